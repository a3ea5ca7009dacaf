from image_cpr.cli import main

raise SystemExit(main())
