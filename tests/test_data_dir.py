import os

from storage import env_file_path, get_data_dir, match_file_path, participants_file_path


def test_data_dir_paths_redirect(tmp_path, monkeypatch):
    monkeypatch.setenv('DATA_DIR', str(tmp_path))
    monkeypatch.delenv('PARTICIPANTS_FILE', raising=False)
    (tmp_path / '.env').write_text('SECRET_KEY=test\n')
    # Env, participants and match files should live underneath DATA_DIR
    assert env_file_path() == str(tmp_path / '.env')
    assert participants_file_path() == str(tmp_path / 'participants.yaml')
    assert match_file_path(2040) == str(tmp_path / 'secret-santa-2040.json')


def test_env_file_prefers_data_dir_file(tmp_path, monkeypatch):
    monkeypatch.setenv('DATA_DIR', str(tmp_path))
    data_env = tmp_path / '.env'
    data_env.write_text('SECRET_KEY=data-dir\n')
    custom = tmp_path / 'custom' / '.env'
    custom.parent.mkdir(parents=True, exist_ok=True)
    custom.write_text('SECRET_KEY=custom\n')
    monkeypatch.setenv('ENV_FILE', str(custom))
    assert env_file_path() == str(data_env)


def test_env_file_falls_back_when_missing(tmp_path, monkeypatch):
    monkeypatch.setenv('DATA_DIR', str(tmp_path))
    custom = tmp_path / 'custom' / '.env'
    custom.parent.mkdir(parents=True, exist_ok=True)
    custom.write_text('SECRET_KEY=custom\n')
    monkeypatch.setenv('ENV_FILE', str(custom))
    # No .env in DATA_DIR yet, so we should use ENV_FILE
    assert env_file_path() == str(custom)


def test_data_dir_fallbacks_to_env_file_dir(tmp_path, monkeypatch):
    env_file = tmp_path / '.env'
    env_file.write_text('SECRET_KEY=data\n')
    monkeypatch.delenv('DATA_DIR', raising=False)
    monkeypatch.setenv('ENV_FILE', str(env_file))
    assert get_data_dir() == str(tmp_path.resolve())


def test_data_dir_defaults_to_cwd(tmp_path, monkeypatch):
    monkeypatch.delenv('DATA_DIR', raising=False)
    monkeypatch.delenv('ENV_FILE', raising=False)
    monkeypatch.chdir(tmp_path)
    assert get_data_dir() == os.getcwd()


def test_participants_file_override(tmp_path, monkeypatch):
    custom = tmp_path / 'people.yaml'
    monkeypatch.setenv('PARTICIPANTS_FILE', str(custom))
    assert participants_file_path() == str(custom)


def test_match_file_creates_data_dir(tmp_path):
    target = tmp_path / 'nested' / 'data'
    path = match_file_path(2041, data_dir=str(target))
    assert target.is_dir()
    assert path == str(target / 'secret-santa-2041.json')
