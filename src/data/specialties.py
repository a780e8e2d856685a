"""
Loading of the specialty classification table.
"""

import os

import pandas as pd

from stays.classification import SpecialtyClassifier, normalize_code
from stays.model import Category
from utils import get_logger

logger = get_logger(__name__)

VALID_CATEGORIES = {Category.ACUTE.value, Category.NONACUTE.value}


def load_classification_table(path: str) -> SpecialtyClassifier:
    """
    Load the specialty -> category table from a CSV file.

    The file needs 'specialty' and 'category' columns (case-insensitive);
    categories must be 'acute' or 'nonacute'. When a code appears more than
    once, the first row wins.

    Args:
        path (str): Path to the CSV file.

    Returns:
        SpecialtyClassifier: Classifier over the loaded table.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required columns are missing or a category is invalid.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Specialty classification table not found: {path}")

    table = pd.read_csv(path, dtype=str)
    table.columns = table.columns.str.strip().str.lower()
    missing = [c for c in ("specialty", "category") if c not in table.columns]
    if missing:
        raise ValueError(f"Missing required columns in classification table: {missing}")

    table["specialty"] = table["specialty"].map(normalize_code)
    table["category"] = table["category"].str.strip().str.lower()
    table = table.dropna(subset=["specialty"])

    invalid = table[~table["category"].isin(VALID_CATEGORIES)]
    if not invalid.empty:
        raise ValueError(
            "Invalid categories in classification table for specialties "
            f"{invalid['specialty'].tolist()}; expected one of {sorted(VALID_CATEGORIES)}"
        )

    duplicated = table["specialty"].duplicated()
    if duplicated.any():
        logger.warning(
            f"{int(duplicated.sum())} duplicated specialty code(s) in {path}; keeping the first entry"
        )

    classifier = SpecialtyClassifier(zip(table["specialty"], table["category"]))
    acute = sum(1 for code in classifier.codes() if classifier.is_acute(code))
    logger.info(
        f"Loaded {len(classifier)} specialty code(s) from {path} ({acute} acute)"
    )
    return classifier
