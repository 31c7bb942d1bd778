import pandas as pd

# Short or alternative column headers → MeasureDefinition fields
RENAME_MAP = {
    "hqmf": "hqmf_id",
    "cms": "cms_id",
    "sub": "sub_id",
    "cv": "continuous_variable",
    "populations": "population_ids",
    "logic": "map_fn",
}

def load_sheets_as_tables(workbook_path: str) -> dict[str, pd.DataFrame]:
    """
    Read each worksheet into a DataFrame:
      - first row = header
      - every cell read as text, blanks left as NaN
      - normalize all headers to snake_case lowercase
      - apply renames from RENAME_MAP
    """

    excel = pd.ExcelFile(workbook_path, engine="openpyxl")
    tables: dict[str, pd.DataFrame] = {}

    for sheet_name in excel.sheet_names:
        df = pd.read_excel(
            excel, sheet_name=sheet_name, header=0, dtype=str, engine="openpyxl"
        )

        # CLEAN & NORMALIZE headers:
        df.columns = (
            df.columns.astype(str)
            .str.strip()
            .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
            .str.replace(r"\s+", "_", regex=True)  # spaces → underscore
            .str.replace(":", "", regex=False)  # drop colons
            .str.lower()
        )

        # apply specific renames (e.g. "hqmf" → "hqmf_id")
        df = df.rename(
            columns={
                orig: target
                for orig, target in RENAME_MAP.items()
                if orig in df.columns
            }
        )

        tables[sheet_name] = df

    return tables
