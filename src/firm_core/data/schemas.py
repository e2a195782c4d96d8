"""
Data schemas for CSV snapshot validation.

Defines expected columns and data types for every snapshot file.
"""

from dataclasses import dataclass


@dataclass
class ColumnSchema:
    """Schema definition for a single column."""
    name: str
    dtype: str  # pandas dtype string
    required: bool = True
    nullable: bool = False


@dataclass
class FileSchema:
    """Schema definition for a file."""
    name: str
    columns: list[ColumnSchema]
    description: str

    @property
    def file_name(self) -> str:
        """Snapshot file name for this schema."""
        return f"{self.name}.csv"

    @property
    def required_columns(self) -> list[str]:
        """Get list of required column names."""
        return [c.name for c in self.columns if c.required]

    @property
    def all_columns(self) -> list[str]:
        """Get list of all column names."""
        return [c.name for c in self.columns]

    def validate_columns(self, df_columns: list[str]) -> tuple[bool, list[str]]:
        """
        Validate that a dataframe has the required columns.

        Args:
            df_columns: List of column names from the dataframe

        Returns:
            Tuple of (is_valid, list of missing columns)
        """
        missing = [col for col in self.required_columns if col not in df_columns]
        return len(missing) == 0, missing


# Sectors Schema
SECTORS_SCHEMA = FileSchema(
    name="sectors",
    description="Sector names known to the firm",
    columns=[
        ColumnSchema(name="sector", dtype="str", required=True),
    ],
)

# Instruments Schema
INSTRUMENTS_SCHEMA = FileSchema(
    name="instruments",
    description="Tradable stocks with sector and current price",
    columns=[
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="sector", dtype="str", required=True),
        ColumnSchema(name="price", dtype="str", required=True),
        ColumnSchema(name="company_name", dtype="str", required=False, nullable=True),
    ],
)

# Profiles Schema (one row per profile and sector)
PROFILES_SCHEMA = FileSchema(
    name="profiles",
    description="Target sector percentages per allocation profile",
    columns=[
        ColumnSchema(name="profile_name", dtype="str", required=True),
        ColumnSchema(name="sector", dtype="str", required=True),
        ColumnSchema(name="percentage", dtype="int64", required=True),
    ],
)

# Accounts Schema (input/output)
ACCOUNTS_SCHEMA = FileSchema(
    name="accounts",
    description="Client accounts with advisor, profile and cash balance",
    columns=[
        ColumnSchema(name="account_id", dtype="int64", required=True),
        ColumnSchema(name="client_id", dtype="int64", required=True),
        ColumnSchema(name="advisor_id", dtype="int64", required=True),
        ColumnSchema(name="profile_name", dtype="str", required=True),
        ColumnSchema(name="reinvest", dtype="bool", required=True),
        ColumnSchema(name="cash_balance", dtype="str", required=True),
        ColumnSchema(name="name", dtype="str", required=False, nullable=True),
    ],
)

# Holdings Schema (input/output)
HOLDINGS_SCHEMA = FileSchema(
    name="holdings",
    description="Shares and average cost basis per account and symbol",
    columns=[
        ColumnSchema(name="account_id", dtype="int64", required=True),
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="shares", dtype="str", required=True),
        ColumnSchema(name="acb", dtype="str", required=True),
    ],
)

# Firm Fractional Carry Schema (optional input/output)
FRACTIONAL_CARRY_SCHEMA = FileSchema(
    name="fractional_carry",
    description="Firm-level fractional share balance per symbol",
    columns=[
        ColumnSchema(name="symbol", dtype="str", required=True),
        ColumnSchema(name="shares", dtype="str", required=True),
    ],
)
