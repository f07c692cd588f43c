"""Tests for the live session registry."""

import pytest

from minutes.errors import AlreadyExists, SessionNotFound
from minutes.sessions import AudioChunk, SessionState, SessionStore


class TestCreate:
  def test_create_registers_idle_session(self, store):
    session = store.create("s1", "conn-a", user_id="u1")

    assert session.state == SessionState.IDLE
    assert session.connection_id == "conn-a"
    assert session.subscribers == {"conn-a"}
    assert store.get("conn-a") is session
    assert store.get_by_session_id("s1") is session
    assert "s1" in store

  def test_second_session_on_same_connection_rejected(self, store):
    store.create("s1", "conn-a")

    with pytest.raises(AlreadyExists):
      store.create("s2", "conn-a")

  def test_duplicate_session_id_rejected(self, store):
    store.create("s1", "conn-a")

    with pytest.raises(AlreadyExists):
      store.create("s1", "conn-b")

  def test_sessions_have_independent_buffers(self, store):
    first = store.create("s1", "conn-a")
    second = store.create("s2", "conn-b")

    first.buffer.put(AudioChunk(index=0, payload=b"a", capture_offset_ms=0))

    assert len(first.buffer) == 1
    assert len(second.buffer) == 0
    assert first.lock is not second.lock


class TestLookup:
  def test_get_unknown_connection(self, store):
    with pytest.raises(SessionNotFound):
      store.get("nobody")

  def test_get_owned_rejects_foreign_session(self, store):
    store.create("s1", "conn-a")
    store.create("s2", "conn-b")

    with pytest.raises(SessionNotFound):
      store.get_owned("conn-a", "s2")

    assert store.get_owned("conn-b", "s2").session_id == "s2"


class TestRemove:
  def test_remove_is_idempotent(self, store):
    session = store.create("s1", "conn-a")

    assert store.remove("conn-a") is session
    assert store.remove("conn-a") is None
    assert len(store) == 0

  def test_removal_leaves_snapshot_usable(self, store):
    session = store.create("s1", "conn-a")
    session.buffer.put(AudioChunk(index=0, payload=b"a", capture_offset_ms=0))
    snapshot = session.buffer.freeze()

    store.remove("conn-a")

    assert snapshot[0].payload == b"a"
    assert session.buffer.freeze() is snapshot

  def test_remove_session_unbinds_connection(self, store):
    session = store.create("s1", "conn-a")
    assert store.remove_session(session) is True
    assert store.remove_session(session) is False

    assert store.find("conn-a") is None
    store.create("s2", "conn-a")


class TestReattach:
  def test_detach_then_rebind(self, store):
    session = store.create("s1", "conn-a")

    store.detach("conn-a")
    assert session.connection_id is None
    assert session.subscribers == set()
    assert store.find("conn-a") is None

    assert store.rebind("s1", "conn-b") is session
    assert session.connection_id == "conn-b"
    assert session.subscribers == {"conn-b"}
    assert store.get("conn-b") is session

  def test_rebind_attached_session_rejected(self, store):
    store.create("s1", "conn-a")

    with pytest.raises(AlreadyExists):
      store.rebind("s1", "conn-b")

  def test_rebind_unknown_session(self, store):
    with pytest.raises(SessionNotFound):
      store.rebind("missing", "conn-b")

  def test_remove_session_spares_replacement_with_same_id(self, store):
    stale = store.create("s1", "conn-a")
    store.remove("conn-a")
    replacement = store.create("s1", "conn-b")

    assert store.remove_session(stale) is False
    assert store.get_by_session_id("s1") is replacement
    assert store.get("conn-b") is replacement
