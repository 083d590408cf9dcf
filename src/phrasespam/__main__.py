"""Entry point for running phrasespam as a module.

Usage:
    python -m phrasespam score message.txt
    python -m phrasespam --help
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before any other imports that need env vars

from phrasespam.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
