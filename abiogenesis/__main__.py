from abiogenesis.cli.main import main

raise SystemExit(main())
