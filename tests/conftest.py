"""Pytest configuration and fixtures for summarytab tests."""

import pandas as pd
import pytest


@pytest.fixture(scope="session")
def spark_session():
    """Create a SparkSession for testing.

    This fixture creates a local SparkSession with minimal configuration
    suitable for unit testing. The session is shared across all tests
    in a test session for efficiency. Tests using it are skipped when no
    Java runtime is available.

    Yields:
        SparkSession: Active SparkSession instance.
    """
    from pyspark.sql import SparkSession

    try:
        spark = (
            SparkSession.builder.master("local[2]")
            .appName("summarytab-test")
            .config("spark.sql.shuffle.partitions", "4")
            .getOrCreate()
        )
    except Exception as exc:
        pytest.skip(f"Spark is not available: {exc}")

    # Set log level to reduce noise during tests
    spark.sparkContext.setLogLevel("ERROR")

    yield spark

    # Cleanup after tests
    spark.stop()


MTCARS_MPG = [
    21.0, 21.0, 22.8, 21.4, 18.7, 18.1, 14.3, 24.4, 22.8, 19.2, 17.8, 16.4, 17.3, 15.2, 10.4, 10.4,
    14.7, 32.4, 30.4, 33.9, 21.5, 15.5, 15.2, 13.3, 19.2, 27.3, 26.0, 30.4, 15.8, 19.7, 15.0, 21.4,
]
MTCARS_CYL = [6, 6, 4, 6, 8, 6, 8, 4, 4, 6, 6, 8, 8, 8, 8, 8, 8, 4, 4, 4, 4, 8, 8, 8, 8, 4, 4, 4, 8, 6, 8, 4]
MTCARS_AM = [1, 1, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 0, 0, 0, 0, 0, 1, 1, 1, 1, 1, 1, 1]


@pytest.fixture(scope="function")
def mtcars():
    """The mpg, cyl and am columns of the classic mtcars dataset.

    ``am`` is a categorical with declared levels [automatic, manual], while
    the first row of the data is a manual car.

    Returns:
        DataFrame with 32 rows.
    """
    am = pd.Categorical(
        ["manual" if x == 1 else "automatic" for x in MTCARS_AM],
        categories=["automatic", "manual"],
    )
    return pd.DataFrame({"mpg": MTCARS_MPG, "cyl": MTCARS_CYL, "am": am})


@pytest.fixture(scope="function")
def trial_data():
    """A small trial-like dataset with missing values.

    Returns:
        DataFrame with columns: age (continuous, 1 missing), grade
        (categorical, 1 missing), trt (grouping, 1 missing).
    """
    return pd.DataFrame({
        "age": [23.0, 45.0, 31.0, None, 52.0, 38.0, 61.0, 29.0, 47.0, 55.0, 34.0, 41.0],
        "grade": ["I", "II", "I", "III", "II", None, "I", "III", "II", "I", "II", "III"],
        "trt": ["Drug A", "Drug B", "Drug A", "Drug B", None, "Drug A",
                "Drug B", "Drug A", "Drug B", "Drug A", "Drug B", "Drug A"],
    })
