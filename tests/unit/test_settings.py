from infrastructure.settings import load_settings


def test_defaults():
    settings = load_settings({})

    assert settings.timezone == "Asia/Kuala_Lumpur"
    assert settings.state_file.endswith("state.json")
    assert settings.sweep_enabled is True
    assert settings.sweep_interval_seconds == 1.0
    assert settings.cycle_price("washer") == 5.0
    assert settings.cycle_price("dryer") == 4.0
    assert settings.supabase_enabled is False
    assert settings.telegram_enabled is False
    assert settings.api_port == 8000


def test_overrides_and_invalid_numbers():
    settings = load_settings({
        "STATE_FILE": "/tmp/laundry.json",
        "SWEEP_INTERVAL_SECONDS": "abc",
        "WASHER_CYCLE_PRICE": "6.5",
        "API_PORT": "not-a-port",
        "SWEEP_ENABLED": "no",
        "TELEGRAM_BOT_TOKEN": "token",
        "TELEGRAM_CHAT_ID": "-100",
    })

    assert settings.state_file == "/tmp/laundry.json"
    assert settings.sweep_interval_seconds == 1.0
    assert settings.cycle_price("washer") == 6.5
    assert settings.api_port == 8000
    assert settings.sweep_enabled is False
    assert settings.telegram_enabled is True
