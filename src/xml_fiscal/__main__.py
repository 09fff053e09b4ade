import sys

from xml_fiscal.main import main

sys.exit(main())
