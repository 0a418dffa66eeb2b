from scratchroot.cli import main

raise SystemExit(main())
