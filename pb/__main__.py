"""Allow ``python -m pb``."""
from pb.cli import main

main()
