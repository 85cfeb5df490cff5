import logging

from .table import main

logging.basicConfig(level=logging.WARNING)
main()
