import logging
import os
import subprocess
import tarfile
from pathlib import Path

from starverses.errors import IoFailure

logger = logging.getLogger(__name__)

PARSEC_URL = "https://people.sissa.it/~sbressan/CAF09_V1.2S_M36_LT/no_phase/"
METALLICITY = "Z0.01"
DATA_PATH_ENV = "STARVERSES_DATA_PATH"


def get_data_path(data_path=None):
    """
    Directory holding the unpacked track folders. An explicit path wins over
    the STARVERSES_DATA_PATH environment variable, which wins over
    ~/.cache/starverses.
    """
    if data_path is not None:
        return Path(data_path)
    env_path = os.environ.get(DATA_PATH_ENV)
    if env_path:
        return Path(env_path)
    return Path.home() / ".cache" / "starverses"


def runcmd(cmd, verbose=False):
    process = subprocess.Popen(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True
    )
    std_out, std_err = process.communicate()
    if verbose:
        logger.info("%s %s", std_out.strip(), std_err.strip())
    return process.returncode


def get_data(data_path=None, metallicity=METALLICITY):
    """
    This function gets the PARSEC evolutionary tracks for one metallicity. It
    pulls "{metallicity}.tar.gz" into the data path, unpacks it into
    "{data_path}/{metallicity}/" and removes the archive.
    """
    data_path = get_data_path(data_path)
    data_path.mkdir(parents=True, exist_ok=True)
    archive_url = f"{PARSEC_URL}{metallicity}.tar.gz"
    archive_path = Path(data_path, f"{metallicity}.tar.gz")
    logger.info("Downloading PARSEC data to %s", data_path)

    try:
        try:
            returncode = runcmd(
                ["wget", "--quiet", f"--output-document={archive_path}", archive_url]
            )
        except OSError as err:
            raise IoFailure(f"Could not run wget for {archive_url}: {err}") from err
        if returncode != 0 or not archive_path.exists():
            raise IoFailure(
                f"Download of {archive_url} failed (wget exit {returncode})"
            )

        try:
            with tarfile.open(archive_path, "r:gz") as archive:
                archive.extractall(data_path, filter="data")
        except (tarfile.TarError, OSError) as err:
            raise IoFailure(f"Could not unpack {archive_path}: {err}") from err
    finally:
        # Partial downloads are removed too
        archive_path.unlink(missing_ok=True)


def check_data(folder):
    """
    This function verifies that a track folder holds data, returns True when
    it is missing or empty so that it gets pulled again
    """
    folder = Path(folder)
    if not folder.is_dir():
        return True
    return not any(path.is_file() for path in folder.iterdir())


def ensure_files(data_path=None, metallicity=METALLICITY):
    """
    Make sure the track folder exists locally, downloading it if necessary.
    Returns the folder path.
    """
    folder = Path(get_data_path(data_path), metallicity)
    if check_data(folder):
        get_data(data_path, metallicity)
        if check_data(folder):
            raise IoFailure(f"No track files in {folder} after download")
    return folder
