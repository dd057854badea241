"""Entry point: python -m gaussianizer"""

import sys

from gaussianizer.GAUSSIANIZER import main

if __name__ == "__main__":
    sys.exit(main())
