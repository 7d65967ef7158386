import pandas as pd

from .errors import ConfigurationError


def read_data_file(datafile, obs_names):
    '''
    Read observations from a CSV file into a pandas DataFrame.

    Parameters:
    datafile (str or dict): The path to the file containing the data, or a dictionary containing the path and start date.
        If the input is a dictionary, it must contain the following keys:
            "file": (str) The path to the file containing the data.
            "start": (str) The start date of the data in pandas Period format
    obs_names (list of str): Column names, one per observable.

    Returns:
    pd.DataFrame: T x Ny frame of observations; empty cells are NaN (missing).

    Raises:
    ConfigurationError: If the file cannot be read or has the wrong number of columns.

    Example:
    >>> data = read_data_file({"file": "/path/to/data.csv", "start": "1990Q1"}, ["gdp", "infl"])
    '''
    if isinstance(datafile, dict):
        startdate = datafile.get("start", 0)
        datafile = datafile["file"]
    else:
        startdate = 0

    try:
        # Every column is data, none is the index.
        data = pd.read_csv(datafile, header=None, index_col=False)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise ConfigurationError(f"{datafile} could not be read: {e}") from e

    # If the first row isn't numeric (excluding nan), it's the header.
    first = data.iloc[0]
    if (pd.to_numeric(first, errors='coerce').isna() & first.notna()).any():
        data = data.iloc[1:].reset_index(drop=True)

    if data.shape[1] != len(obs_names):
        raise ConfigurationError(
            f"{datafile} has {data.shape[1]} columns but {len(obs_names)} observables are declared."
        )
    data.columns = obs_names
    data = data.apply(pd.to_numeric, errors='coerce')

    if startdate != 0:
        nobs = data.shape[0]
        # get either 'M or 'Q' from the startdate
        freq = 'Q' if 'Q' in startdate else 'M'
        data.index = pd.period_range(startdate, freq=freq, periods=nobs)

    return data
