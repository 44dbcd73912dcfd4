"""End-to-end tests for the game socket through Starlette's TestClient."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from routes import game_ws
from services.player_token import create_player_token

TEST_SECRET = "test-secret-for-websocket-tests-0123456789"


def _client() -> TestClient:
    return TestClient(create_app(Settings(player_token_secret=TEST_SECRET, session_sweep_interval_sec=0)))


def _url(game_id: str, player_id: str) -> str:
    token = create_player_token(TEST_SECRET, player_id, player_id.title())
    return f"/ws?game={game_id}&token={token}"


def _move(ws: Any, position: int) -> None:
    ws.send_json({"type": "move", "position": position})


def test_two_players_play_to_a_win_and_stats_are_recorded() -> None:
    with _client() as client:
        registry = client.app.state.stores.registry
        with client.websocket_connect(_url("g1", "alice")) as alice:
            init_a = alice.receive_json()
            assert init_a == {"type": "init", "board": [""] * 9, "turn": "X", "state": "waiting", "player": "X"}

            with client.websocket_connect(_url("g1", "bob")) as bob:
                init_b = bob.receive_json()
                assert init_b["player"] == "O"
                assert init_b["state"] == "playing"
                assert alice.receive_json()["state"] == "playing"

                for ws, position in [(alice, 0), (bob, 4), (alice, 1), (bob, 5)]:
                    _move(ws, position)
                    update_a, update_b = alice.receive_json(), bob.receive_json()
                    assert update_a == update_b
                    assert update_a["type"] == "update"

                _move(alice, 2)
                for ws in (alice, bob):
                    over = ws.receive_json()
                    assert over["type"] == "gameover"
                    assert over["winner"] == "X"
                    assert over["winning_cells"] == [0, 1, 2]
                    assert over["state"] == "finished"

        assert "g1" not in registry
        alice_stats = client.get("/api/stats", params={"player_id": "alice"}).json()
        bob_stats = client.get("/api/stats", params={"player_id": "bob"}).json()
        assert alice_stats["wins"] == 1
        assert bob_stats["losses"] == 1


def test_invalid_moves_are_silently_ignored() -> None:
    with _client() as client:
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            with client.websocket_connect(_url("g1", "bob")) as bob:
                bob.receive_json()
                alice.receive_json()

                _move(alice, 12)   # out of range
                _move(alice, 3)
                update = bob.receive_json()
                assert update["board"] == ["", "", "", "X", "", "", "", "", ""]
                assert update["turn"] == "O"
                assert alice.receive_json() == update

                _move(bob, 3)      # occupied
                _move(bob, 5)
                update = alice.receive_json()
                assert update["board"] == ["", "", "", "X", "", "O", "", "", ""]
                assert update["turn"] == "X"
                assert bob.receive_json() == update


def test_third_player_is_refused() -> None:
    with _client() as client:
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            with client.websocket_connect(_url("g1", "bob")) as bob:
                bob.receive_json()
                with client.websocket_connect(_url("g1", "carol")) as carol:
                    assert carol.receive_json() == {"type": "error", "error": "Game is full"}
                    with pytest.raises(WebSocketDisconnect):
                        carol.receive_json()
                session = client.app.state.stores.registry._sessions["g1"]
                assert set(session.players) == {"alice", "bob"}


def test_new_game_resets_board_for_both_players() -> None:
    with _client() as client:
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            with client.websocket_connect(_url("g1", "bob")) as bob:
                bob.receive_json()
                alice.receive_json()
                _move(alice, 4)
                alice.receive_json()
                bob.receive_json()

                bob.send_json({"type": "new_game"})
                for ws in (alice, bob):
                    reset = ws.receive_json()
                    assert reset == {"type": "update", "board": [""] * 9, "turn": "X", "state": "waiting"}


def test_unknown_command_is_ignored_and_loop_continues() -> None:
    with _client() as client:
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            alice.send_json({"type": "chat", "text": "hello?"})
            alice.send_json({"type": "new_game"})
            assert alice.receive_json() == {"type": "update", "board": [""] * 9, "turn": "X", "state": "waiting"}


def test_malformed_frame_closes_socket_and_frees_the_seat() -> None:
    with _client() as client:
        registry = client.app.state.stores.registry
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            alice.send_text("this is not json")
            with pytest.raises(WebSocketDisconnect) as exc_info:
                alice.receive_json()
            assert exc_info.value.code == 1003
        assert "g1" not in registry


def test_binary_frame_closes_socket_with_unsupported_data() -> None:
    with _client() as client:
        registry = client.app.state.stores.registry
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            alice.send_bytes(b'{"type": "move", "position": 0}')
            with pytest.raises(WebSocketDisconnect) as exc_info:
                alice.receive_json()
            assert exc_info.value.code == 1003
        assert "g1" not in registry


def test_seat_is_freed_when_the_writer_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_pump(websocket: Any, channel: Any, game_id: str) -> None:
        await channel.get()
        raise ValueError("writer failed")

    monkeypatch.setattr(game_ws, "_pump", failing_pump)
    with _client() as client:
        registry = client.app.state.stores.registry
        with pytest.raises(ValueError, match="writer failed"):
            with client.websocket_connect(_url("g1", "alice")):
                pass
        assert "g1" not in registry


def test_disconnect_mid_game_lets_a_new_opponent_take_the_seat() -> None:
    with _client() as client:
        with client.websocket_connect(_url("g1", "alice")) as alice:
            alice.receive_json()
            with client.websocket_connect(_url("g1", "bob")) as bob:
                bob.receive_json()
                alice.receive_json()
                _move(alice, 0)
                alice.receive_json()
                bob.receive_json()

            left = alice.receive_json()
            assert left["state"] == "waiting"

            with client.websocket_connect(_url("g1", "carol")) as carol:
                init = carol.receive_json()
                assert init["player"] == "O"
                assert init["board"][0] == "X"
                assert init["turn"] == "O"
                assert alice.receive_json()["state"] == "playing"


@pytest.mark.parametrize(
    "url",
    [
        "/ws",
        "/ws?game=g1",
        "/ws?token=abc",
        "/ws?game=g1&token=not-a-valid-token",
    ],
)
def test_handshake_is_refused_without_valid_credentials(url: str) -> None:
    with _client() as client:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(url):
                pass
        assert exc_info.value.code == 1008
        assert len(client.app.state.stores.registry) == 0


def test_handshake_is_refused_when_tokens_are_not_configured() -> None:
    with TestClient(create_app(Settings(session_sweep_interval_sec=0))) as client:
        token = create_player_token(TEST_SECRET, "alice", "Alice")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws?game=g1&token={token}"):
                pass
        assert exc_info.value.code == 1008
