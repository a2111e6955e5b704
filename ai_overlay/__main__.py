from ai_overlay.launcher import main

raise SystemExit(main())
