"""Basic tests for the minutes relay package."""

import minutes


def test_import():
  """Test that the module can be imported."""
  assert minutes is not None


def test_version():
  """Test that version is defined."""
  assert hasattr(minutes, "__version__")


def test_connection_lost_names_session_and_state():
  from minutes.errors import ConnectionLost, RelayError

  error = ConnectionLost("s1", "recording")
  assert isinstance(error, RelayError)
  assert str(error) == "Connection lost while session s1 was 'recording'"
