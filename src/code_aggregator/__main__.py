from code_aggregator.cli import main

raise SystemExit(main())
