"""Allow ``python -m arbos``."""

from arbos.main import main

raise SystemExit(main())
