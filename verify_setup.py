"""
Setup verification script for the Scripture Counsel backend.
Checks that dependencies, configuration and services are in place.
"""
import asyncio
import sys
import os
from typing import List, Tuple

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_status(message: str, status: bool):
    """Print colored status message."""
    symbol = f"{GREEN}✓{RESET}" if status else f"{RED}✗{RESET}"
    print(f"{symbol} {message}")


async def check_python_version() -> bool:
    """Check Python version is 3.11+."""
    version = sys.version_info
    if version.major == 3 and version.minor >= 11:
        print_status(f"Python version: {version.major}.{version.minor}.{version.micro}", True)
        return True
    else:
        print_status(f"Python version {version.major}.{version.minor} (requires 3.11+)", False)
        return False


async def check_dependencies() -> bool:
    """Check if required packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "asyncpg",
        "httpx",
        "psutil",
        "pydantic_settings",
        "alembic",
    ]

    all_installed = True
    for package in required_packages:
        try:
            __import__(package)
            print_status(f"Package '{package}' installed", True)
        except ImportError:
            print_status(f"Package '{package}' missing", False)
            all_installed = False

    return all_installed


async def check_env_file() -> bool:
    """Check if .env file exists."""
    if os.path.exists(".env"):
        print_status(".env file exists", True)
        return True
    else:
        print_status(".env file missing (settings fall back to defaults)", False)
        return False


async def check_openai_config() -> bool:
    """Check that either an API key or mock mode is configured."""
    from app.config import settings

    if settings.MOCK_AI_RESPONSES:
        print_status("MOCK_AI_RESPONSES enabled (no API key needed)", True)
        return True
    print_status(
        f"OPENAI_API_KEY: {'configured' if settings.has_openai_key else 'missing'}",
        settings.has_openai_key,
    )
    return settings.has_openai_key


async def check_database() -> bool:
    """Check the configured database accepts connections and count seeded verses."""
    try:
        from sqlalchemy import func, select

        from app.database import AsyncSessionLocal, close_db, init_db, ping_db
        from app.models.database_models import BibleVerse

        await init_db()
        async with AsyncSessionLocal() as db:
            await ping_db(db)
            total = (await db.execute(select(func.count(BibleVerse.id)))).scalar_one()
            embedded = (
                await db.execute(
                    select(func.count(BibleVerse.id)).where(BibleVerse.embedding.isnot(None))
                )
            ).scalar_one()
        await close_db()

        print_status("Database connection successful", True)
        print_status(f"Verses stored: {total} ({embedded} embedded)", total > 0)
        if total == 0:
            print(f"  {YELLOW}Run: python manage_verses.py seed{RESET}")
        return total > 0

    except Exception as e:
        print_status(f"Database connection failed: {str(e)}", False)
        print(f"  {YELLOW}Check DATABASE_URL and that PostgreSQL is running{RESET}")
        return False


async def main():
    """Run all verification checks."""
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}Scripture Counsel Backend - Setup Verification{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")

    checks: List[Tuple[str, callable]] = [
        ("Python Version", check_python_version),
        ("Dependencies", check_dependencies),
        ("Environment File", check_env_file),
        ("OpenAI Configuration", check_openai_config),
        ("Database + Verses", check_database),
    ]

    results = []

    for check_name, check_func in checks:
        print(f"\n{BLUE}Checking {check_name}...{RESET}")
        try:
            result = await check_func()
            results.append(result)
        except Exception as e:
            print_status(f"Error during check: {str(e)}", False)
            results.append(False)

    # Summary
    print(f"\n{BLUE}{'='*60}{RESET}")
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"{GREEN}✓ All checks passed! ({passed}/{total}){RESET}")
        print(f"\n{GREEN}You're ready to run the backend:{RESET}")
        print(f"  uvicorn app.main:app --reload")
    else:
        print(f"{RED}✗ Some checks failed ({passed}/{total} passed){RESET}")
        print(f"\n{YELLOW}Please fix the issues above before running the backend.{RESET}")
        sys.exit(1)

    print(f"{BLUE}{'='*60}{RESET}\n")


if __name__ == "__main__":
    asyncio.run(main())
