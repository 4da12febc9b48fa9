from typing import Optional, Any, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Documented HR column name -> attribute name on the schema models.
# Columns not listed here are ignored on load.
FIELD_ATTRIBUTES = {
    "EmployeeID": "employee_id",
    "Age": "age",
    "Attrition": "attrition",
    "Department": "department",
    "JobRole": "job_role",
    "MonthlyIncome": "monthly_income",
    "YearsAtCompany": "years_at_company",
    "DistanceFromHome": "distance_from_home",
    "TotalWorkingYears": "total_working_years",
    "JobSatisfaction": "job_satisfaction",
    "EnvironmentSatisfaction": "environment_satisfaction",
    "WorkLifeBalance": "work_life_balance",
    "OverTime": "overtime",
    "StockOptionLevel": "stock_option_level",
    "MaritalStatus": "marital_status",
    "Education": "education",
}

NUMERIC_COLUMNS = [
    "Age", "MonthlyIncome", "YearsAtCompany", "DistanceFromHome",
    "TotalWorkingYears", "JobSatisfaction", "EnvironmentSatisfaction",
    "WorkLifeBalance", "StockOptionLevel", "Education",
]

ATTRITION_VALUES = ("Yes", "No")


class RawEmployeeInput(BaseModel):
    """
    Attributes of a single employee as supplied by a form or API request.

    Accepts either the HR column names (``MonthlyIncome``) or snake_case
    names (``monthly_income``). Unknown fields are ignored. Missing values
    stay ``None``; imputation is the encoder's job.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    age: Optional[float] = Field(None, alias="Age", description="Age in years")
    department: Optional[str] = Field(None, alias="Department")
    monthly_income: Optional[float] = Field(None, alias="MonthlyIncome")
    years_at_company: Optional[float] = Field(None, alias="YearsAtCompany")
    distance_from_home: Optional[float] = Field(None, alias="DistanceFromHome")
    total_working_years: Optional[float] = Field(None, alias="TotalWorkingYears")
    job_satisfaction: Optional[float] = Field(None, alias="JobSatisfaction", description="1-4 scale")
    environment_satisfaction: Optional[float] = Field(None, alias="EnvironmentSatisfaction", description="1-4 scale")
    work_life_balance: Optional[float] = Field(None, alias="WorkLifeBalance", description="1-4 scale")
    overtime: Optional[str] = Field(None, alias="OverTime", description="Yes/No")
    stock_option_level: Optional[float] = Field(None, alias="StockOptionLevel", description="0-3")
    marital_status: Optional[str] = Field(None, alias="MaritalStatus")
    education: Optional[float] = Field(None, alias="Education", description="1-5 ordinal")

    @field_validator("department", "marital_status", "overtime", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, float) and value != value:
            return None
        text = str(value).strip()
        return text or None

    @field_validator(
        "age", "monthly_income", "years_at_company", "distance_from_home",
        "total_working_years", "job_satisfaction", "environment_satisfaction",
        "work_life_balance", "stock_option_level", "education",
        mode="before",
    )
    @classmethod
    def _nan_to_none(cls, value):
        # pandas hands us NaN for empty cells
        if isinstance(value, float) and value != value:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def get_field(self, column: str) -> Any:
        """Return the value for an HR column name such as ``MonthlyIncome``."""
        attr = FIELD_ATTRIBUTES.get(column)
        if attr is None:
            return None
        return getattr(self, attr, None)


class EmployeeRecord(RawEmployeeInput):
    """A row of the loaded dataset. Adds identity and the training label."""

    employee_id: Optional[str] = Field(None, alias="EmployeeID")
    job_role: Optional[str] = Field(None, alias="JobRole")
    attrition: Optional[str] = Field(None, alias="Attrition", description="Yes/No")

    @field_validator("employee_id", "job_role", "attrition", mode="before")
    @classmethod
    def _text_or_none(cls, value):
        if value is None or (isinstance(value, float) and value != value):
            return None
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        return text or None

    @property
    def is_trainable(self) -> bool:
        return self.age is not None and self.age > 0 and self.attrition in ATTRITION_VALUES

    @property
    def label(self) -> Optional[int]:
        if self.attrition not in ATTRITION_VALUES:
            return None
        return 1 if self.attrition == "Yes" else 0


EmployeeLike = Union[RawEmployeeInput, Mapping[str, Any]]


def as_employee(record: EmployeeLike) -> RawEmployeeInput:
    """Coerce a plain mapping into a record model; models pass through."""
    if isinstance(record, RawEmployeeInput):
        return record
    return EmployeeRecord.model_validate(dict(record))
