"""Engine dispatcher for detecting and handling Pandas vs Spark DataFrames."""

from typing import Union

import pandas as pd
from loguru import logger
from pyspark.sql import DataFrame as SparkDataFrame


BackendType = Union[pd.DataFrame, SparkDataFrame]


def get_backend(df: BackendType) -> str:
    """Detect the backend type of a DataFrame.
    
    Args:
        df: A pandas or PySpark DataFrame.
        
    Returns:
        String identifier: "pandas" or "spark".
        
    Raises:
        TypeError: If df is not a recognized DataFrame type.
    """
    if isinstance(df, pd.DataFrame):
        return "pandas"
    elif isinstance(df, SparkDataFrame):
        return "spark"
    else:
        raise TypeError(
            f"Unsupported DataFrame type: {type(df)}. "
            "Expected pandas.DataFrame or pyspark.sql.DataFrame."
        )


def to_pandas(df: BackendType) -> pd.DataFrame:
    """Return a pandas view of the input, collecting Spark data to the driver.

    Summary tables need every value of every summarized column (medians,
    distinct counts, contingency tables), so Spark input is collected once
    up front. Select the summarized columns before calling this on large data.

    Args:
        df: A pandas or PySpark DataFrame.

    Returns:
        The same object for pandas input, a collected copy for Spark input.

    Raises:
        TypeError: If df is not a recognized DataFrame type.
    """
    if get_backend(df) == "pandas":
        return df

    logger.debug("Collecting Spark DataFrame with {} columns to pandas", len(df.columns))
    return df.toPandas()
