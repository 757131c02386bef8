from citegraph.cli import main

raise SystemExit(main())
