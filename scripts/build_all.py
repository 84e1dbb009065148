#!/usr/bin/env python
"""
Build pipeline - loads and validates reference data, then runs the tests.

Usage:
    python scripts/build_all.py
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from offerte_tool.config.settings import get_settings
from offerte_tool.data.reference_loader import load_reference_data, write_report
from offerte_tool.engine.errors import ReferenceDataError
from offerte_tool.services.reference_service import ReferenceService


def main():
    print("=" * 60)
    print("OFFERTE TOOL BUILD PIPELINE")
    print("=" * 60)
    print()
    
    settings = get_settings()

    print("[1/3] Loading reference data...")
    try:
        reference, report = load_reference_data(
            settings.reference_source,
            overrides_csv=settings.correctie_overrides,
            verbose=True,
        )
    except (FileNotFoundError, ReferenceDataError) as e:
        print("\n❌ BUILD FAILED")
        print(f"  ERROR: {e}")
        for error in getattr(e, 'errors', []):
            print(f"  ERROR: {error}")
        sys.exit(1)

    if settings.load_report:
        write_report(report, settings.load_report)
    
    print()
    print("[2/3] Validating reference data...")
    validation = ReferenceService(reference).validate()
    for warning in validation.warnings:
        print(f"  ⚠️  {warning}")
    if not validation.valid:
        print("\n❌ VALIDATION FAILED")
        for error in validation.errors:
            print(f"  ERROR: {error}")
        sys.exit(1)
    
    print()
    print("[3/3] Running tests...")
    
    # Run tests
    import subprocess
    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests', '-v', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )
    
    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)
    
    print()
    print("=" * 60)
    print("✅ BUILD COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    print(f"  Norm hours: {report['metrics']['normuren']}")
    print(f"  Correction factors: {report['metrics']['correctiefactoren']}")
    print(f"  Products: {report['metrics']['producten']} ({report['metrics']['inactive_producten']} inactive)")
    print()
    print("Scopes:")
    for scope in report['metrics']['scopes']:
        print(f"  {scope}")


if __name__ == "__main__":
    main()
