"""
Shared test fixtures and configuration for the attrition risk tests.
"""
import os
import random

import pytest

# Set test environment before importing package modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"


@pytest.fixture
def scenario_records():
    """The three-employee dataset used throughout the documentation."""
    return [
        {"Age": 25, "MonthlyIncome": 3000, "OverTime": "Yes", "Attrition": "Yes"},
        {"Age": 45, "MonthlyIncome": 9000, "OverTime": "No", "Attrition": "No"},
        {"Age": 30, "MonthlyIncome": 5000, "OverTime": "No", "Attrition": "No"},
    ]


@pytest.fixture
def sample_high_risk_employee():
    """Young, low-paid employee working overtime."""
    return {
        "Age": 25,
        "MonthlyIncome": 3000,
        "OverTime": "Yes",
    }


@pytest.fixture
def sample_low_risk_employee():
    return {
        "Age": 50,
        "Department": "Human Resources",
        "MonthlyIncome": 12000,
        "YearsAtCompany": 12,
        "JobSatisfaction": 4,
        "WorkLifeBalance": 4,
        "EnvironmentSatisfaction": 4,
        "DistanceFromHome": 2,
        "OverTime": "No",
        "StockOptionLevel": 2,
    }


@pytest.fixture
def training_records():
    """Deterministic synthetic dataset with a learnable attrition signal."""
    return generate_training_records(80, seed=7)


@pytest.fixture
def fast_training_config():
    from attrition_risk.schemas.training import TrainingConfig

    return TrainingConfig(
        epochs=5,
        batch_size=16,
        validation_split=0.2,
        hidden_layer_sizes=[16, 8],
        random_state=0,
    )


@pytest.fixture
def trained_service(tmp_path, training_records, fast_training_config):
    from attrition_risk.services.attrition_prediction_service import AttritionPredictionService

    service = AttritionPredictionService(models_dir=tmp_path)
    service.load_records(training_records)
    service.train(fast_training_config)
    return service


SAMPLE_CSV = (
    "EmployeeID,Age,Attrition,Department,JobRole,MonthlyIncome,YearsAtCompany,"
    "JobSatisfaction,WorkLifeBalance,EnvironmentSatisfaction,DistanceFromHome,"
    "OverTime,StockOptionLevel,MaritalStatus,Education\n"
    "1,41,Yes,Sales,Sales Executive,5993,6,4,1,2,1,Yes,0,Single,2\n"
    "2,49,No,Research & Development,Research Scientist,5130,10,2,3,3,8,No,1,Married,1\n"
    "3,37,Yes,Research & Development,Laboratory Technician,2090,0,3,3,4,2,Yes,0,Single,2\n"
    "4,33,No,Research & Development,Research Scientist,2909,8,3,3,4,3,Yes,0,Married,4\n"
    "5,27,No,\"Research & Development\",\"Technician, Lab\",3468,2,2,3,1,2,No,1,Married,1\n"
    "6,32,No,Human Resources,Manager,3068,7,4,2,4,2,No,0,Single,2\n"
)


@pytest.fixture
def sample_csv():
    return SAMPLE_CSV


def generate_training_records(rows: int = 100, seed: int = 0):
    """Generate HR records where low income, overtime and youth drive attrition."""
    rng = random.Random(seed)
    departments = ["Sales", "Research & Development", "Human Resources"]
    marital = ["Single", "Married", "Divorced"]

    records = []
    for i in range(rows):
        left = i % 3 == 0
        if left:
            age = rng.randint(20, 32)
            income = rng.randint(1500, 4500)
            overtime = "Yes" if rng.random() < 0.8 else "No"
            satisfaction = rng.randint(1, 2)
        else:
            age = rng.randint(30, 58)
            income = rng.randint(4000, 15000)
            overtime = "Yes" if rng.random() < 0.2 else "No"
            satisfaction = rng.randint(2, 4)

        records.append({
            "EmployeeID": str(1000 + i),
            "Age": age,
            "Attrition": "Yes" if left else "No",
            "Department": rng.choice(departments),
            "JobRole": "Analyst",
            "MonthlyIncome": income,
            "YearsAtCompany": rng.randint(0, 15),
            "DistanceFromHome": rng.randint(1, 29),
            "TotalWorkingYears": rng.randint(1, 30),
            "JobSatisfaction": satisfaction,
            "EnvironmentSatisfaction": rng.randint(1, 4),
            "WorkLifeBalance": rng.randint(1, 4),
            "OverTime": overtime,
            "StockOptionLevel": rng.randint(0, 3),
            "MaritalStatus": rng.choice(marital),
            "Education": rng.randint(1, 5),
        })
    return records
