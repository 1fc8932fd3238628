"""Post-clone environment setup helper.

Run once after creating the env and installing the package:

    python -m venv .venv && source .venv/bin/activate
    pip install -e ".[test]"          # add ,finbert for the local model
    python setup_env.py

This script:
1. Verifies all required imports resolve correctly.
2. Checks that the ``curl`` binary used by the fallback fetch strategy is on PATH.
3. Lists every required environment variable that is still unset.
4. Prints a clear summary of what passed / failed.
"""

import shutil
import sys


def verify_imports() -> bool:
    print("Verifying core imports...")
    required = [
        ("requests", "requests"),
        ("bs4", "beautifulsoup4"),
        ("lxml", "lxml"),
        ("dateutil", "python-dateutil"),
        ("feedparser", "feedparser"),
        ("yaml", "PyYAML"),
        ("dotenv", "python-dotenv"),
        ("yfinance", "yfinance"),
        ("openai", "openai"),
        ("flask", "flask"),
    ]
    all_ok = True
    for mod, pkg in required:
        try:
            __import__(mod)
            print(f"  [OK] {pkg}")
        except ImportError:
            print(f"  [MISSING] {pkg}  →  run: pip install {pkg}")
            all_ok = False

    try:
        __import__("transformers")
        print("  [OK] transformers (AI_PROVIDER=finbert available)")
    except ImportError:
        print("  [INFO] transformers not installed — AI_PROVIDER=finbert unavailable (pip install -e \".[finbert]\")")
    return all_ok


def verify_curl() -> bool:
    print("\nChecking curl...")
    path = shutil.which("curl")
    if path:
        print(f"  [OK] curl found at {path}")
        return True
    print("  [WARN] curl not on PATH — the 'curl' fetch strategy will always fail over")
    return False


def verify_environment() -> bool:
    print("\nChecking environment variables...")
    try:
        from newsdigest.core.config import load_config, missing_requirements, resolve_settings
        try:
            config = load_config()
        except FileNotFoundError:
            config = {}
        settings = resolve_settings(config)
    except Exception as exc:
        print(f"  [ERROR] Could not resolve settings: {exc}")
        return False

    print(f"  provider={settings.analyzer.provider} store={settings.store.backend}")
    missing = missing_requirements(settings)
    for name in missing:
        print(f"  [MISSING] {name}")
    if not missing:
        print("  [OK] All required variables are set.")
    return not missing


def verify_pipeline_imports() -> bool:
    print("\nVerifying pipeline source imports...")
    try:
        from newsdigest.pipeline.engine import PipelineEngine  # noqa: F401
        from newsdigest.pipeline.orchestrator import AnalysisOrchestrator  # noqa: F401
        from newsdigest.web.app import create_app  # noqa: F401
        print("  [OK] All pipeline modules import cleanly.")
        return True
    except Exception as exc:
        print(f"  [ERROR] Pipeline import failed: {exc}")
        return False


if __name__ == "__main__":
    print("=" * 60)
    print("  News Digest — Environment Setup Check")
    print("=" * 60)
    if not verify_imports():
        print("\nSome packages are missing. Run:  pip install -e .")
        sys.exit(1)
    verify_curl()
    env_ok = verify_environment()
    imports_ok = verify_pipeline_imports()
    print("\n" + "=" * 60)
    if env_ok and imports_ok:
        print("  Setup complete. You can now run: python run_pipeline.py")
    else:
        print("  Setup incomplete — fix the items above (see .env.example).")
    print("=" * 60)
    sys.exit(0 if env_ok and imports_ok else 1)
