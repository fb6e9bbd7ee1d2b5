import json
import logging
import os
import tempfile
from pathlib import Path

from errors import EncodingError, PersistenceError, StorePathError


logger = logging.getLogger(__name__)

STORE_EXTENSION = '.json'
STORE_KEY = 'couples'


def _clean_dir(path: str | None) -> str | None:
    if not path:
        return None
    expanded = os.path.expanduser(path)
    if not expanded:
        return None
    return os.path.abspath(expanded)


def _dir_from_file(value: str | None) -> str | None:
    if not value:
        return None
    directory = os.path.dirname(value)
    if not directory:
        directory = os.getcwd()
    return _clean_dir(directory)


def _derive_data_dir() -> str | None:
    direct = _clean_dir(os.environ.get('DATA_DIR'))
    if direct:
        return direct
    env_file_dir = _dir_from_file(os.environ.get('ENV_FILE'))
    if env_file_dir:
        return env_file_dir
    return None


def get_data_dir() -> str:
    """Return the directory used for writable data (env, participants, matches)."""
    derived = _derive_data_dir()
    if derived:
        return derived
    return os.getcwd()


def ensure_dir(path: str) -> str:
    if path:
        os.makedirs(path, exist_ok=True)
    return path


def ensure_data_dir() -> str:
    return ensure_dir(get_data_dir())


def _existing_in_data_dir(filename: str) -> str | None:
    data_dir = _derive_data_dir()
    if not data_dir:
        return None
    ensure_dir(data_dir)
    candidate = os.path.join(data_dir, filename)
    if os.path.exists(candidate):
        return candidate
    return None


def env_file_path() -> str:
    data_env = _existing_in_data_dir('.env')
    if data_env:
        return data_env
    env_file = os.environ.get('ENV_FILE')
    if env_file:
        parent = os.path.dirname(env_file)
        if parent:
            ensure_dir(parent)
        return env_file
    return os.path.join(ensure_data_dir(), '.env')


def participants_file_path() -> str:
    path = os.environ.get('PARTICIPANTS_FILE')
    if path:
        return os.path.abspath(os.path.expanduser(path))
    return os.path.join(get_data_dir(), 'participants.yaml')


def _file_mode(path) -> int:
    try:
        return os.stat(path).st_mode & 0o777
    except FileNotFoundError:
        mask = os.umask(0)
        os.umask(mask)
        return 0o666 & ~mask


def match_file_path(year: int, data_dir: str | None = None) -> str:
    base = data_dir or get_data_dir()
    ensure_dir(base)
    return os.path.join(base, f'secret-santa-{year}.json')


class AssignmentStore:
    """Writes the concealed couples of one run to a ``.json`` file.

    The path is checked when the store is built, so a bad extension fails
    before anything touches the filesystem.
    """

    def __init__(self, path):
        self.path = Path(path)
        extension = self.path.suffix
        if not extension:
            raise StorePathError(f"Error reading extension of {str(path)!r}")
        if extension.lower() != STORE_EXTENSION:
            raise StorePathError(
                f"Bad extension {extension!r} for {str(path)!r}, only {STORE_EXTENSION} files"
            )

    def __repr__(self):
        return f"AssignmentStore({str(self.path)!r})"

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, couples) -> None:
        try:
            data = json.dumps(
                {STORE_KEY: [[giver, token] for giver, token in couples]},
                indent=2,
                ensure_ascii=False,
            ).encode('utf-8') + b'\n'
        except (TypeError, ValueError) as exc:
            raise EncodingError("Error serializing couples") from exc

        # Write next to the target and swap it in, so a failed write never
        # leaves a half-written file behind.
        directory = self.path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f'.{self.path.stem}.', suffix='.tmp'
            )
        except OSError as exc:
            raise PersistenceError(f"Error opening file {str(self.path)!r}") from exc

        try:
            with os.fdopen(fd, 'wb') as f:
                # mkstemp creates 0600; keep the mode a plain open() would give.
                os.fchmod(f.fileno(), _file_mode(self.path))
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException as exc:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            if isinstance(exc, OSError):
                raise PersistenceError(f"Error writing data in file {str(self.path)!r}") from exc
            raise

        logger.info("Saved %d couples to %s", len(couples), self.path)

    def load(self) -> list[tuple[str, str]]:
        try:
            with open(self.path, 'rb') as f:
                raw = f.read()
        except OSError as exc:
            raise PersistenceError(f"Error reading file {str(self.path)!r}") from exc

        try:
            document = json.loads(raw.decode('utf-8'))
        except ValueError as exc:
            raise EncodingError(f"Invalid JSON in {str(self.path)!r}") from exc

        rows = document.get(STORE_KEY) if isinstance(document, dict) else None
        if not isinstance(rows, list):
            raise EncodingError(f"Missing {STORE_KEY!r} list in {str(self.path)!r}")

        couples = []
        for row in rows:
            if (
                not isinstance(row, list)
                or len(row) != 2
                or not all(isinstance(value, str) for value in row)
            ):
                raise EncodingError(f"Malformed couple {row!r} in {str(self.path)!r}")
            couples.append((row[0], row[1]))
        return couples
