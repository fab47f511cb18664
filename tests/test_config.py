def test_env_overrides_and_validation(monkeypatch, fresh_config):
    monkeypatch.setenv("STREAM_REC_API_URL", "https://stream.example/")
    monkeypatch.setenv("STREAM_REC_HTTP_TIMEOUT", "0.1")  # should clamp to min
    monkeypatch.setenv("STREAM_REC_MAX_RETRIES", "5")
    monkeypatch.setenv("STREAM_REC_DEFAULT_LIMIT", "0")  # min clamp

    cfg = fresh_config()

    assert cfg.API_BASE_URL == "https://stream.example"
    assert cfg.HTTP_TIMEOUT == 1.0
    assert cfg.MAX_HTTP_RETRIES == 5
    assert cfg.DEFAULT_LIMIT == 1


def test_weights_path_and_token_respect_env(monkeypatch, fresh_config, tmp_path):
    weights_path = tmp_path / "weights.json"
    monkeypatch.setenv("STREAM_REC_WEIGHTS", str(weights_path))
    monkeypatch.setenv("STREAM_REC_API_TOKEN", "secret")

    cfg = fresh_config()

    assert cfg.WEIGHTS_PATH == weights_path
    assert cfg.API_TOKEN == "secret"


def test_invalid_env_values_fall_back_to_defaults(monkeypatch, fresh_config):
    monkeypatch.setenv("STREAM_REC_HTTP_TIMEOUT", "not-a-float")
    monkeypatch.setenv("STREAM_REC_DEFAULT_LIMIT", "bad-int")
    monkeypatch.setenv("STREAM_REC_SIMILAR_LIMIT", "oops")
    monkeypatch.delenv("STREAM_REC_API_TOKEN", raising=False)
    monkeypatch.delenv("STREAM_REC_WEIGHTS", raising=False)

    cfg = fresh_config()

    assert cfg.HTTP_TIMEOUT == 30.0
    assert cfg.DEFAULT_LIMIT == 10
    assert cfg.DEFAULT_SIMILAR_LIMIT == 5
    assert cfg.API_TOKEN is None
    assert cfg.WEIGHTS_PATH is None
