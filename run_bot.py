"""
Run script for the Bouncer Discord bot
"""
import sys
from pathlib import Path

# Add the src directory to Python path
project_root = Path(__file__).parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    from bouncer.main import main
    sys.exit(main())
