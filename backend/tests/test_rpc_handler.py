import asyncio
import time

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from agent.edit_orchestrator import SessionManager
from handlers import rpc_handler
from handlers.health_handler import router as health_router
from handlers.rpc_handler import dispatch, get_methods, router as rpc_router
from models.api_models import ErrorCode, RpcRequest, RpcResponse


@pytest.fixture
def manager():
    return SessionManager(fps=30)


def call(manager, method, **params):
    return dispatch(manager, RpcRequest(id=1, method=method, params=params))


def result_of(manager, method, **params):
    response = call(manager, method, **params)
    assert response.error is None, response.error
    return response.result


@pytest.fixture
def session_id(manager):
    return result_of(manager, "session.create")["sessionId"]


@pytest.fixture
def media_id(manager, session_id):
    media = result_of(
        manager, "media.register",
        sessionId=session_id, name="intro.mp4", url="https://cdn.example.com/intro.mp4",
        type="video", duration=4.5, width=1920, height=1080,
    )["mediaFile"]
    return media["id"]


@pytest.fixture
def track_id(manager, session_id):
    return result_of(
        manager, "edit.create_track", sessionId=session_id, name="Main", type="video"
    )["track"]["trackId"]


class TestEnvelope:
    def test_response_requires_exactly_one_of_result_or_error(self):
        with pytest.raises(ValueError):
            RpcResponse(id=1)
        with pytest.raises(ValueError):
            RpcResponse(id=1, result={}, error={"code": 1, "message": "x"})

    def test_unknown_method(self, manager):
        response = call(manager, "edit.explode")

        assert response.error.code == ErrorCode.UNKNOWN_METHOD
        assert response.result is None
        assert response.id == 1

    def test_invalid_params(self, manager, session_id):
        response = call(manager, "edit.split_clip", sessionId=session_id, trackId="t")

        assert response.error.code == ErrorCode.INVALID_PARAMS
        assert "itemId" in response.error.message

    def test_unknown_session(self, manager):
        response = call(manager, "edit.get_timeline", sessionId="nope")

        assert response.error.code == ErrorCode.SESSION_NOT_FOUND

    def test_closed_method_set(self):
        methods = get_methods()

        assert "agent.execute_next" in methods
        assert "edit.add_media" in methods
        assert "edit.get_keyframes" in methods
        assert "render.export" not in methods


class TestSessions:
    def test_lifecycle(self, manager):
        session_id = result_of(manager, "session.create")["sessionId"]

        assert result_of(manager, "session.list")["sessions"] == [session_id]
        assert result_of(manager, "session.delete", sessionId=session_id) == {"success": True}
        assert result_of(manager, "session.list")["sessions"] == []


class TestMedia:
    def test_register_list_info_delete(self, manager, session_id, media_id):
        files = result_of(manager, "media.list", sessionId=session_id)["mediaFiles"]
        assert [f["id"] for f in files] == [media_id]

        info = result_of(manager, "media.get_info", sessionId=session_id, mediaId=media_id)
        assert info["mediaFile"]["type"] == "video"
        assert info["mediaFile"]["duration"] == 4.5

        assert result_of(manager, "media.delete", sessionId=session_id, mediaId=media_id)["success"]
        response = call(manager, "media.get_info", sessionId=session_id, mediaId=media_id)
        assert response.error.code == ErrorCode.MEDIA_NOT_FOUND


class TestEditCommands:
    def test_overlay_track_is_video(self, manager, session_id):
        track = result_of(
            manager, "edit.create_track", sessionId=session_id, name="Logos", type="overlay"
        )["track"]

        assert track["kind"] == "video"

    def test_add_media_sizes_item_from_media(self, manager, session_id, media_id, track_id):
        result = result_of(
            manager, "edit.add_media",
            sessionId=session_id, trackId=track_id, mediaId=media_id, startFrame=10,
        )

        assert result["success"]
        item = result["mediaItem"]
        assert item["startFrame"] == 10
        assert item["durationFrames"] == 135
        assert (item["width"], item["height"]) == (1920, 1080)
        assert (item["opacity"], item["scale"], item["rotation"]) == (1.0, 1.0, 0.0)

        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert timeline["totalDuration"] == 145
        assert timeline["fps"] == 30
        assert timeline["overlaps"] == []

    def test_add_media_unknown_media(self, manager, session_id, track_id):
        response = call(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId="nope"
        )

        assert response.error.code == ErrorCode.MEDIA_NOT_FOUND

    def test_mutation_failure_is_a_result(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(manager, "edit.set_track_state", sessionId=session_id, trackId=track_id, locked=True)

        result = result_of(
            manager, "edit.move_clip",
            sessionId=session_id, trackId=track_id, itemId=item_id, newStartFrame=50,
        )

        assert result["success"] is False
        assert result["reason"] == "TrackLocked"
        assert track_id in result["message"]

    def test_split_undo_redo(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]

        split = result_of(
            manager, "edit.split_clip",
            sessionId=session_id, trackId=track_id, itemId=item_id, splitFrame=60,
        )
        assert split == {"success": True}

        def item_count():
            timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
            return len(timeline["tracks"][0]["items"])

        assert item_count() == 2
        assert result_of(manager, "edit.undo", sessionId=session_id)["success"]
        assert item_count() == 1
        assert result_of(manager, "edit.redo", sessionId=session_id)["success"]
        assert item_count() == 2

    def test_history_flags(self, manager, session_id, media_id, track_id):
        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert (timeline["canUndo"], timeline["canRedo"]) == (False, False)

        result_of(manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id)
        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert (timeline["canUndo"], timeline["canRedo"]) == (True, False)

        assert result_of(manager, "edit.undo", sessionId=session_id) == {
            "success": True, "canUndo": False, "canRedo": True,
        }
        assert result_of(manager, "edit.redo", sessionId=session_id) == {
            "success": True, "canUndo": True, "canRedo": False,
        }

    def test_split_outside_item(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]

        result = result_of(
            manager, "edit.split_clip",
            sessionId=session_id, trackId=track_id, itemId=item_id, splitFrame=500,
        )

        assert result["success"] is False
        assert result["reason"] == "InvalidRange"

    def test_trim_and_delete(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]

        assert result_of(
            manager, "edit.trim_clip",
            sessionId=session_id, trackId=track_id, itemId=item_id, endFrame=30,
        )["success"]
        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert timeline["totalDuration"] == 30

        assert result_of(
            manager, "edit.delete_clip", sessionId=session_id, trackId=track_id, itemId=item_id
        )["success"]
        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert timeline["totalDuration"] == 0

    def test_set_properties(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]

        result = result_of(
            manager, "edit.set_properties",
            sessionId=session_id, trackId=track_id, itemId=item_id, x=12, opacity=0.25,
        )

        assert result["mediaItem"]["x"] == 12
        assert result["mediaItem"]["opacity"] == 0.25
        assert result["mediaItem"]["scale"] == 1.0

    def test_add_text(self, manager, session_id):
        result = result_of(
            manager, "edit.add_text",
            sessionId=session_id, text="Welcome", startFrame=15, fontSize=48, color="#fff",
        )

        assert result["success"]
        assert result["track"]["name"] == "Text Overlay"
        item = result["mediaItem"]
        assert item["text"] == "Welcome"
        assert (item["startFrame"], item["durationFrames"]) == (15, 90)
        assert item["style"] == {"fontSize": 48, "color": "#fff"}

    def test_active_items_and_current_frame(self, manager, session_id, media_id, track_id):
        result_of(
            manager, "edit.add_media",
            sessionId=session_id, trackId=track_id, mediaId=media_id, startFrame=10,
        )

        assert result_of(manager, "edit.get_active_items", sessionId=session_id, frame=5)["items"] == []
        assert len(result_of(manager, "edit.get_active_items", sessionId=session_id, frame=20)["items"]) == 1
        assert result_of(
            manager, "edit.set_current_frame", sessionId=session_id, frame=1000
        ) == {"currentFrame": 145}

    def test_keyframes(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]

        assert result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=0, property="opacity", value=0,
        )["success"]
        assert result_of(
            manager, "edit.remove_keyframe",
            sessionId=session_id, itemId=item_id, frame=0, property="opacity",
        )["success"]

        missing = result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId="ghost", frame=0, property="opacity", value=0,
        )
        assert missing["reason"] == "ItemNotFound"

    def test_keyframes_show_in_timeline(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=30, property="opacity", value=1,
        )
        result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=0, property="scale", value=2,
            easing="ease-in",
        )

        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert [(kf["frame"], kf["property"]) for kf in timeline["keyframes"][item_id]] == [
            (0, "scale"), (30, "opacity"),
        ]

        opacity = result_of(
            manager, "edit.get_keyframes", sessionId=session_id, itemId=item_id, property="opacity"
        )["keyframes"]
        assert opacity == [{"frame": 30, "property": "opacity", "value": 1.0, "easing": "linear"}]
        assert result_of(
            manager, "edit.get_keyframes", sessionId=session_id, itemId="ghost"
        ) == {"keyframes": []}

    def test_delete_clip_drops_keyframes(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=0, property="opacity", value=0,
        )

        assert result_of(
            manager, "edit.delete_clip", sessionId=session_id, trackId=track_id, itemId=item_id
        )["success"]

        assert result_of(manager, "edit.get_timeline", sessionId=session_id)["keyframes"] == {}

    def test_delete_track_drops_keyframes(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=0, property="opacity", value=0,
        )

        assert result_of(manager, "edit.delete_track", sessionId=session_id, trackId=track_id)["success"]

        assert result_of(
            manager, "edit.get_keyframes", sessionId=session_id, itemId=item_id
        ) == {"keyframes": []}

    def test_transition_keyframes_are_visible(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(
            manager, "agent.submit_directives",
            sessionId=session_id,
            directives=[{"id": "t1", "type": "add_transition", "target": item_id,
                         "parameters": {"effect": "fade_in"}}],
        )

        assert result_of(manager, "agent.execute_next", sessionId=session_id)["success"]

        timeline = result_of(manager, "edit.get_timeline", sessionId=session_id)
        assert [(kf["frame"], kf["value"]) for kf in timeline["keyframes"][item_id]] == [
            (0, 0.0), (15, 1.0),
        ]

    def test_export_import(self, manager, session_id, media_id, track_id):
        result_of(manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id)
        exported = result_of(manager, "edit.export_timeline", sessionId=session_id)["timeline"]

        other = result_of(manager, "session.create")["sessionId"]
        assert result_of(manager, "edit.import_timeline", sessionId=other, timeline=exported)["success"]

        timeline = result_of(manager, "edit.get_timeline", sessionId=other)
        assert timeline["totalDuration"] == exported["totalDuration"] == 135
        assert timeline["tracks"][0]["trackId"] == track_id

    def test_export_import_carries_keyframes(self, manager, session_id, media_id, track_id):
        item_id = result_of(
            manager, "edit.add_media", sessionId=session_id, trackId=track_id, mediaId=media_id
        )["mediaItem"]["itemId"]
        result_of(
            manager, "edit.add_keyframe",
            sessionId=session_id, itemId=item_id, frame=10, property="opacity", value=0.5,
        )
        exported = result_of(manager, "edit.export_timeline", sessionId=session_id)["timeline"]
        assert [kf["frame"] for kf in exported["keyframes"][item_id]] == [10]

        exported["keyframes"]["ghost"] = [{"frame": 0, "property": "opacity", "value": 0}]
        other = result_of(manager, "session.create")["sessionId"]
        assert result_of(manager, "edit.import_timeline", sessionId=other, timeline=exported)["success"]

        keyframes = result_of(manager, "edit.get_timeline", sessionId=other)["keyframes"]
        assert list(keyframes) == [item_id]
        assert keyframes[item_id][0]["value"] == 0.5


class TestAgentCommands:
    def test_directive_flow(self, manager, session_id):
        registered = result_of(
            manager, "agent.register", sessionId=session_id, agentId="dir-1", agentType="director"
        )
        assert registered["message"] == "Agent dir-1 registered as director"

        submitted = result_of(
            manager, "agent.submit_asset",
            sessionId=session_id,
            asset={
                "id": "bgm-1", "type": "bgm", "agentId": "composer",
                "data": "https://cdn.example.com/bgm.mp3", "metadata": {"duration": 2.0},
            },
        )
        assert submitted["message"] == "Asset bgm-1 received"

        received = result_of(
            manager, "agent.submit_directives",
            sessionId=session_id,
            directives=[
                {"id": "d2", "type": "add_bgm", "priority": 2, "parameters": {"assetId": "bgm-1"}},
                {"id": "d1", "type": "add_text", "priority": 1, "parameters": {"text": "Hi"}},
            ],
        )
        assert received["message"] == "2 directives received"
        assert received["editingStatus"]["pendingDirectives"] == ["d1", "d2"]
        assert received["editingStatus"]["status"] == "processing"

        first = result_of(manager, "agent.execute_next", sessionId=session_id)
        assert first["success"]
        assert first["directiveId"] == "d1"
        assert first["editingStatus"]["currentStep"] == 1

        result_of(manager, "agent.execute_next", sessionId=session_id)
        status = result_of(manager, "agent.get_status", sessionId=session_id)["editingStatus"]
        assert status["status"] == "completed"
        assert status["message"] == "2 tasks completed, 0 pending"
        assert [a["id"] for a in status["generatedAssets"]] == ["bgm-1"]

        empty = result_of(manager, "agent.execute_next", sessionId=session_id)
        assert empty == {"success": False, "message": "No pending directives"}

    def test_unknown_agent_role(self, manager, session_id):
        response = call(
            manager, "agent.register", sessionId=session_id, agentId="x", agentType="janitor"
        )

        assert response.error.code == ErrorCode.INVALID_PARAMS


class TestHttp:
    @pytest.fixture
    def app(self, manager):
        app = FastAPI()
        app.state.session_manager = manager
        app.include_router(health_router)
        app.include_router(rpc_router)
        return app

    @pytest.fixture
    def client(self, app):
        return TestClient(app)

    def test_requests_for_one_session_do_not_overlap(self, app, session_id, monkeypatch):
        in_flight = 0
        peak = 0
        params_model, get_timeline = rpc_handler._COMMANDS["edit.get_timeline"]

        def slow_get_timeline(manager, params):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                time.sleep(0.05)
                return get_timeline(manager, params)
            finally:
                in_flight -= 1

        monkeypatch.setitem(
            rpc_handler._COMMANDS, "edit.get_timeline", (params_model, slow_get_timeline)
        )

        async def send_all():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                return await asyncio.gather(*(
                    client.post(
                        "/rpc",
                        json={"id": n, "method": "edit.get_timeline", "params": {"sessionId": session_id}},
                    )
                    for n in range(3)
                ))

        responses = asyncio.run(send_all())

        assert [response.json()["id"] for response in responses] == [0, 1, 2]
        assert all("result" in response.json() for response in responses)
        assert peak == 1

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "sessions": 0}

    def test_rpc_round_trip(self, client):
        created = client.post("/rpc", json={"id": "a", "method": "session.create"})

        assert created.status_code == 200
        body = created.json()
        assert body["id"] == "a"
        assert "error" not in body

        status = client.post(
            "/rpc",
            json={"id": "b", "method": "agent.get_status", "params": {"sessionId": body["result"]["sessionId"]}},
        ).json()
        assert status["result"]["editingStatus"]["status"] == "idle"

    def test_error_envelope(self, client):
        response = client.post("/rpc", json={"id": 7, "method": "nope", "params": {}})

        assert response.status_code == 200
        assert response.json() == {
            "id": 7,
            "error": {"code": ErrorCode.UNKNOWN_METHOD.value, "message": "Unknown method: nope"},
        }

    def test_malformed_request(self, client):
        response = client.post("/rpc", json=["not", "an", "object"])

        assert response.status_code == 200
        assert response.json()["error"]["code"] == ErrorCode.INVALID_REQUEST.value
