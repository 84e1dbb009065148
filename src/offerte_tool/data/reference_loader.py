"""
Reference Loader - Reads and validates the rate tables for the calculator.

Sources:
- a directory with normuren.csv, correctiefactoren.csv, producten.csv and
  instellingen.json
- an Excel workbook with sheets Normuren, Correctiefactoren, Producten and
  Instellingen (key/value rows)

Without a Correctiefactoren table the system default factors are used; tenant
overrides are merged over whichever base applies.

Every row is validated with its line number; a load report records file
hashes, counts and problems.
"""
import hashlib
import json
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..engine.errors import InvalidInputError, ReferenceDataError
from ..engine.models import (
    Correctiefactor,
    FactorType,
    Instellingen,
    Normuur,
    Product,
    ReferenceData,
    Scope,
    parse_enum,
)
from ..engine.rate_tables import RateTables
from ..services.correctie_service import default_correctiefactoren, merge_correctiefactoren

logger = logging.getLogger(__name__)

TABLES = ('Normuren', 'Correctiefactoren', 'Producten')

# Tables that fall back to system defaults when absent
OPTIONAL_TABLES = ('Correctiefactoren',)

REQUIRED_COLUMNS = {
    'Normuren': ['scope', 'activiteit', 'normuur_per_eenheid', 'eenheid'],
    'Correctiefactoren': ['type', 'waarde', 'factor'],
    'Producten': ['id', 'productnaam', 'verkoopprijs', 'eenheid'],
}


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


def parse_bool(value: str, default: bool = True) -> bool:
    """Parse a boolean from CSV string."""
    if value is None or str(value).strip() == '':
        return default
    return str(value).strip().lower() in ('true', '1', 'yes', 'on', 'ja')


def parse_optional_str(value) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None or str(value).strip() == '':
        return None
    return str(value).strip()


def parse_number(value, field_name: str, line_num: int, default: Optional[float] = None) -> float:
    """Parse a finite number, accepting a decimal comma."""
    text = '' if value is None else str(value).strip().replace(',', '.')
    if text == '':
        if default is not None:
            return default
        raise ValueError(f"Line {line_num}: {field_name} is required")
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"Line {line_num}: {field_name} must be a number, got '{value}'") from None
    if not math.isfinite(number):
        raise ValueError(f"Line {line_num}: {field_name} must be finite")
    return number


def _has_table(source: Path, name: str) -> bool:
    if source.is_dir():
        return (source / f'{name.lower()}.csv').exists()
    with pd.ExcelFile(source) as workbook:
        return name in workbook.sheet_names


def _read_table(source: Path, name: str) -> pd.DataFrame:
    """Read one table as strings with stripped headers and cells."""
    if source.is_dir():
        df = pd.read_csv(source / f'{name.lower()}.csv', dtype=str)
    else:
        df = pd.read_excel(source, sheet_name=name, dtype=str)

    df = df.fillna('')
    df.columns = [str(c).strip() for c in df.columns]
    for col in df.columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def _check_columns(df: pd.DataFrame, name: str) -> list[str]:
    missing = [c for c in REQUIRED_COLUMNS[name] if c not in df.columns]
    if missing:
        return [f"{name}: missing column(s) {', '.join(missing)}"]
    return []


def _parse_normuren(df: pd.DataFrame, errors: list[str]) -> list[Normuur]:
    normuren = []
    for line_num, (_, row) in enumerate(df.iterrows(), start=2):  # +2 for 1-indexed header row
        try:
            scope = parse_enum(Scope, row['scope'], 'scope')
            activiteit = parse_optional_str(row['activiteit'])
            if not activiteit:
                raise ValueError(f"Line {line_num}: activiteit is required")
            normuren.append(Normuur(
                id=parse_optional_str(row.get('id')) or f"{scope.value}:{activiteit}",
                scope=scope,
                activiteit=activiteit,
                normuur_per_eenheid=parse_number(row['normuur_per_eenheid'], 'normuur_per_eenheid', line_num),
                eenheid=parse_optional_str(row['eenheid']) or 'stuk',
                omschrijving=parse_optional_str(row.get('omschrijving')),
            ))
        except InvalidInputError as e:
            errors.append(f"Normuren line {line_num}: {e.message}")
        except ValueError as e:
            errors.append(f"Normuren {e}")
    return normuren


def _parse_correctiefactoren(df: pd.DataFrame, errors: list[str], label: str = 'Correctiefactoren') -> list[Correctiefactor]:
    factoren = []
    for line_num, (_, row) in enumerate(df.iterrows(), start=2):
        try:
            factor = parse_number(row['factor'], 'factor', line_num)
            if factor <= 0:
                raise ValueError(f"Line {line_num}: factor must be > 0, got {factor}")
            factoren.append(Correctiefactor(
                type=parse_enum(FactorType, row['type'], 'type'),
                waarde=row['waarde'].lower(),
                factor=factor,
                omschrijving=parse_optional_str(row.get('omschrijving')),
            ))
        except InvalidInputError as e:
            errors.append(f"{label} line {line_num}: {e.message}")
        except ValueError as e:
            errors.append(f"{label} {e}")
    return factoren


def _parse_producten(df: pd.DataFrame, errors: list[str]) -> list[Product]:
    producten = []
    for line_num, (_, row) in enumerate(df.iterrows(), start=2):
        try:
            product_id = parse_optional_str(row['id'])
            if not product_id:
                raise ValueError(f"Line {line_num}: id is required")
            verkoopprijs = parse_number(row['verkoopprijs'], 'verkoopprijs', line_num)
            if verkoopprijs < 0:
                raise ValueError(f"Line {line_num}: verkoopprijs must be >= 0")
            verlies = parse_number(row.get('verliespercentage'), 'verliespercentage', line_num, default=0.0)
            if not 0 <= verlies <= 100:
                raise ValueError(f"Line {line_num}: verliespercentage must be between 0 and 100")
            producten.append(Product(
                id=product_id,
                productnaam=parse_optional_str(row['productnaam']) or product_id,
                categorie=parse_optional_str(row.get('categorie')) or '',
                inkoopprijs=parse_number(row.get('inkoopprijs'), 'inkoopprijs', line_num, default=0.0),
                verkoopprijs=verkoopprijs,
                eenheid=parse_optional_str(row['eenheid']) or 'stuk',
                verliespercentage=verlies,
                is_actief=parse_bool(row.get('is_actief')),
            ))
        except ValueError as e:
            errors.append(f"Producten {e}")
    return producten


def _read_instellingen(source: Path) -> dict:
    if source.is_dir():
        with open(source / 'instellingen.json', 'r', encoding='utf-8') as f:
            return json.load(f)

    df = _read_table(source, 'Instellingen')
    raw = dict(zip(df['key'], df['value']))
    scope_marges = {
        key.split('.', 1)[1]: value
        for key, value in raw.items()
        if key.startswith('scopeMarges.') and value != ''
    }
    data = {k: v for k, v in raw.items() if not k.startswith('scopeMarges.')}
    data['scopeMarges'] = scope_marges
    return data


def parse_instellingen(data: dict, errors: list[str]) -> Optional[Instellingen]:
    """Build Instellingen from the stored camelCase settings document."""
    try:
        uurtarief = parse_number(data.get('uurtarief'), 'uurtarief', 1)
        marge = parse_number(data.get('standaardMargePercentage'), 'standaardMargePercentage', 1)
        btw = parse_number(data.get('btwPercentage'), 'btwPercentage', 1)
    except ValueError as e:
        errors.append(f"Instellingen {e}")
        return None

    if uurtarief < 0:
        errors.append("Instellingen: uurtarief must be >= 0")
    for name, pct in (('standaardMargePercentage', marge), ('btwPercentage', btw)):
        if not 0 <= pct <= 100:
            errors.append(f"Instellingen: {name} must be between 0 and 100")

    scope_marges = {}
    for key, value in (data.get('scopeMarges') or {}).items():
        try:
            scope = parse_enum(Scope, key, 'scope')
            pct = parse_number(value, f'scopeMarges.{key}', 1)
        except InvalidInputError as e:
            errors.append(f"Instellingen: {e.message}")
            continue
        except ValueError as e:
            errors.append(f"Instellingen {e}")
            continue
        if not 0 <= pct <= 100:
            errors.append(f"Instellingen: scopeMarges.{key} must be between 0 and 100")
            continue
        scope_marges[scope] = pct

    return Instellingen(
        uurtarief=uurtarief,
        standaard_marge_percentage=marge,
        btw_percentage=btw,
        scope_marges=scope_marges,
        uren_afronden_op_kwartier=parse_bool(str(data.get('urenAfrondenOpKwartier', '')), default=False),
    )


def load_reference_data(
    source: Path,
    overrides_csv: Optional[Path] = None,
    verbose: bool = False,
) -> tuple[ReferenceData, dict]:
    """
    Load the reference tables from a directory or workbook.

    Args:
        source: Directory with CSV/JSON files or an .xlsx workbook
        overrides_csv: Optional tenant correction factor overrides
        verbose: Print progress messages

    Returns:
        (ReferenceData, load report)

    Raises:
        FileNotFoundError: source (or one of its files) does not exist
        ReferenceDataError: one or more rows failed validation
    """
    source = Path(source)
    if not source.exists():
        raise FileNotFoundError(f"Reference data not found at {source}.")

    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "source": str(source),
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": [],
    }
    errors = report["errors"]

    if source.is_dir():
        for name in (*TABLES, 'Instellingen'):
            ext = 'json' if name == 'Instellingen' else 'csv'
            path = source / f'{name.lower()}.{ext}'
            if not path.exists():
                if name in OPTIONAL_TABLES:
                    continue
                raise FileNotFoundError(f"{path.name} not found in {source}.")
            report["input_files"][name] = {"path": str(path), "hash": get_file_hash(path)}
    else:
        report["input_files"]["workbook"] = {"path": str(source), "hash": get_file_hash(source)}

    frames = {
        name: _read_table(source, name)
        for name in TABLES
        if name not in OPTIONAL_TABLES or _has_table(source, name)
    }
    for name, df in frames.items():
        errors.extend(_check_columns(df, name))
    if errors:
        report["status"] = "failed"
        raise ReferenceDataError(f"Reference data at {source} is missing columns", errors=list(errors))

    normuren = _parse_normuren(frames['Normuren'], errors)
    if 'Correctiefactoren' in frames:
        factoren = _parse_correctiefactoren(frames['Correctiefactoren'], errors)
    else:
        factoren = default_correctiefactoren()
        report["warnings"].append("No Correctiefactoren table, using system default correction factors")
        report["metrics"]["default_correctiefactoren"] = True
    producten = _parse_producten(frames['Producten'], errors)
    instellingen = parse_instellingen(_read_instellingen(source), errors)

    if overrides_csv is not None and Path(overrides_csv).exists():
        override_df = pd.read_csv(overrides_csv, dtype=str).fillna('')
        override_df.columns = [str(c).strip() for c in override_df.columns]
        overrides = _parse_correctiefactoren(override_df, errors, label='Overrides')
        factoren = merge_correctiefactoren(factoren, overrides)
        report["input_files"]["overrides"] = {"path": str(overrides_csv), "hash": get_file_hash(Path(overrides_csv))}
        report["metrics"]["overrides"] = len(overrides)

    inactive = [p.id for p in producten if not p.is_actief]
    if inactive:
        report["warnings"].append(f"{len(inactive)} inactive product(s) excluded from calculations")

    neutral = {(FactorType.BEREIKBAARHEID, 'goed')}
    present = {(f.type, f.waarde) for f in factoren}
    for factor_type, waarde in neutral - present:
        report["warnings"].append(f"No correction factor for {factor_type.value}={waarde}")

    report["metrics"].update({
        "normuren": len(normuren),
        "correctiefactoren": len(factoren),
        "producten": len(producten),
        "inactive_producten": len(inactive),
        "scopes": sorted({n.scope.value for n in normuren}),
    })

    reference = None
    if instellingen is not None:
        reference = ReferenceData(
            normuren=tuple(normuren),
            correctiefactoren=tuple(factoren),
            producten=tuple(producten),
            instellingen=instellingen,
        )
        try:
            RateTables(reference)
        except ReferenceDataError as e:
            errors.extend(e.errors)

    if errors or reference is None:
        report["status"] = "failed"
        if verbose:
            print("Validation errors:")
            for err in errors:
                print(f"  ❌ {err}")
        raise ReferenceDataError(f"Reference data at {source} has {len(errors)} error(s)", errors=list(errors))

    for warning in report["warnings"]:
        logger.warning(warning)

    report["status"] = "success"
    logger.info(
        "Loaded reference data from %s: %d norm hours, %d factors, %d products",
        source, len(normuren), len(factoren), len(producten),
    )
    if verbose:
        print(f"✅ Loaded {len(normuren)} norm hours, {len(factoren)} correction factors, {len(producten)} products")

    return reference, report


def write_report(report: dict, path: Path):
    """Write a load report as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)
