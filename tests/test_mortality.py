import pandas as pd
import pytest

from rabiesmap.errors import SchemaMismatchError, UnmappableCodeWarning
from rabiesmap.models import MORTALITY_COLUMNS
from rabiesmap.mortality import KNOWN_UNMAPPED_CODES, clean_mortality

from conftest import MORTALITY_ROWS, make_raw_mortality


def test_columns_and_row_count(raw_mortality):
    df = clean_mortality(raw_mortality)
    assert list(df.columns) == MORTALITY_COLUMNS
    # 12 raw rows - excluded year (KEN 2022) - ANT - XKX
    assert len(df) == len(MORTALITY_ROWS) - 3


def test_excluded_codes_never_survive(raw_mortality):
    df = clean_mortality(raw_mortality)
    assert not set(df["country_code"]) & set(KNOWN_UNMAPPED_CODES)


def test_excluded_year_dropped(raw_mortality):
    df = clean_mortality(raw_mortality)
    assert 2022 not in set(df["year"])
    kept = clean_mortality(raw_mortality, excluded_year=1900)
    assert 2022 in set(kept["year"])


def test_names_come_from_codes(raw_mortality):
    df = clean_mortality(raw_mortality).set_index(["country_code", "year"])
    # WHO spells it "United States of America"; the lookup decides
    assert df.loc[("USA", 2020), "country_name"] == "United States"
    assert df.loc[("BOL", 2015), "country_name"] == "Bolivia"
    assert pd.isna(df.loc[("BOL", 2015), "death_count"])


def test_negative_and_garbage_counts_become_null():
    raw = make_raw_mortality([
        ("AFR", "Africa", "KEN", "Kenya", 2015, -4),
        ("AFR", "Africa", "NER", "Niger", 2015, "n/a"),
    ])
    df = clean_mortality(raw)
    assert df["death_count"].isna().all()
    assert len(df) == 2


def test_unexpected_code_is_reported_not_silent():
    raw = make_raw_mortality([
        ("AFR", "Africa", "KEN", "Kenya", 2015, 4),
        ("XXX", "Nowhere", "QQQ", "Atlantis", 2015, 9),
    ])
    with pytest.warns(UnmappableCodeWarning):
        df = clean_mortality(raw)
    assert list(df["country_code"]) == ["KEN"]

    with pytest.raises(SchemaMismatchError):
        clean_mortality(raw, strict_codes=True)


def test_missing_column_fails_loudly(raw_mortality):
    with pytest.raises(SchemaMismatchError, match="FactValueNumeric"):
        clean_mortality(raw_mortality.drop(columns=["FactValueNumeric"]))


def test_duplicate_keys_rejected():
    raw = make_raw_mortality([
        ("AFR", "Africa", "KEN", "Kenya", 2015, 4),
        ("AFR", "Africa", "KEN", "Kenya", 2015, 5),
    ])
    with pytest.raises(SchemaMismatchError, match="duplicate"):
        clean_mortality(raw)


def test_counts_are_non_negative(raw_mortality):
    df = clean_mortality(raw_mortality)
    assert (df["death_count"].dropna() >= 0).all()
