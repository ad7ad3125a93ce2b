import base64
import io

from PIL import Image

from aravalli import assistant
from aravalli.errors import ExternalServiceError
from aravalli.simulator import STATUS_NATURAL, STATUS_PERMANENT, STATUS_SEASONAL


def _png_data_url():
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=(34, 139, 34)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


# --- Analysis ---
def test_analyze_returns_simulated_reading(client):
    response = client.post("/api/analyze", json={"location": "Gurugram Ridge", "image": "data:..."})
    assert response.status_code == 200
    body = response.json()

    assert isinstance(body["id"], int)
    assert body["status"] in {STATUS_NATURAL, STATUS_SEASONAL, STATUS_PERMANENT}
    assert -0.2 <= body["ndvi"] < 0.6
    assert 0 <= body["nightlight"] < 100
    assert {"isConstruction", "isLegal", "mlConfidence", "detectedObjects", "indices", "prediction"} <= set(body)
    assert body["explanation"] == assistant.IMAGE_FALLBACK


def test_analyze_uses_defaults_for_missing_fields(client):
    client.post("/api/analyze", json={})
    record = client.get("/api/history").json()[0]
    assert record["location_name"] == "Unknown Location"
    assert record["image_url"] == ""


def test_analyze_explains_real_image(client, fake_llm):
    fake_llm.image_responses = ["Dense canopy, no construction visible."]
    response = client.post("/api/analyze", json={"location": "Sariska", "image": _png_data_url()})

    assert response.json()["explanation"] == "Dense canopy, no construction visible."
    assert fake_llm.calls[-1][:2] == ("image", "image/png")


def test_analyze_falls_back_when_vision_fails(client, fake_llm):
    fake_llm.image_responses = [ExternalServiceError("AI service error: timeout")]
    response = client.post("/api/analyze", json={"location": "Sariska", "image": _png_data_url()})
    assert response.status_code == 200
    assert response.json()["explanation"] == assistant.IMAGE_FALLBACK


def test_analyze_skips_vision_when_unconfigured(client, fake_llm):
    fake_llm.configured = False
    client.post("/api/analyze", json={"location": "Sariska", "image": _png_data_url()})
    assert fake_llm.calls == []


def test_history_lists_newest_first(client):
    first = client.post("/api/analyze", json={"location": "First"}).json()["id"]
    second = client.post("/api/analyze", json={"location": "Second"}).json()["id"]

    history = client.get("/api/history").json()
    assert [r["id"] for r in history[:2]] == [second, first]
    assert history[0]["location_name"] == "Second"
    assert history[0]["user_verified"] is None


def test_history_is_capped(client, monkeypatch):
    from aravalli import config

    monkeypatch.setattr(config, "HISTORY_LIMIT", 3)
    for i in range(5):
        client.post("/api/analyze", json={"location": f"Spot {i}"})
    assert len(client.get("/api/history").json()) == 3


def test_verify_records_feedback(client):
    analysis_id = client.post("/api/analyze", json={"location": "Ridge"}).json()["id"]

    assert client.post(f"/api/verify/{analysis_id}", json={"correct": True}).json() == {"success": True}
    assert client.get("/api/history").json()[0]["user_verified"] is True

    client.post(f"/api/verify/{analysis_id}", json={"correct": False})
    assert client.get("/api/history").json()[0]["user_verified"] is False


def test_verify_unknown_analysis(client):
    response = client.post("/api/verify/999999", json={"correct": True})
    assert response.status_code == 404
    assert response.json() == {"error": "Analysis not found"}


def test_verify_requires_correct_flag(client):
    analysis_id = client.post("/api/analyze", json={"location": "Ridge"}).json()["id"]
    response = client.post(f"/api/verify/{analysis_id}", json={})
    assert response.status_code == 400
    assert response.json()["invalid_fields"] == ["correct"]


# --- Dashboard ---
def test_location_details(client):
    body = client.get("/api/location/loc_2").json()
    assert body["id"] == "loc_2"
    assert body["canopy_cover"] == 15
    assert body["alerts"]


def test_trends(client):
    body = client.get("/api/trends").json()
    assert body["status"] == "Degradation"
    assert body["slope"] < -0.01
    assert [p["year"] for p in body["ndvi"]] == ["2019", "2020", "2021", "2022", "2023", "2024"]


# --- Assistant ---
def test_chat_reply(client, fake_llm):
    fake_llm.text_responses = ["The Aravallis are among the oldest fold mountains."]
    response = client.post("/api/chat", json={"message": "How old are the Aravallis?"})

    assert response.json() == {"reply": "The Aravallis are among the oldest fold mountains."}
    kind, prompt, system_instruction = fake_llm.calls[0]
    assert prompt == "How old are the Aravallis?"
    assert system_instruction == assistant.CHAT_SYSTEM_INSTRUCTION


def test_chat_requires_message(client):
    response = client.post("/api/chat", json={"message": "  "})
    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_chat_service_failure(client, fake_llm):
    fake_llm.text_responses = [ExternalServiceError("Gemini API key is missing.")]
    response = client.post("/api/chat", json={"message": "hello"})
    assert response.status_code == 502
    assert response.json() == {"error": "Gemini API key is missing."}


def test_default_suggestions(client):
    assert client.get("/api/suggestions").json() == {"suggestions": assistant.DEFAULT_SUGGESTIONS}


def test_generate_suggestions(client, fake_llm):
    fake_llm.text_responses = [
        'Here you go:\n```json\n[{"category": "Policy", "title": "Ban quarrying", '
        '"description": "Stop it.", "impact": "High"}, {"title": "incomplete"}]\n```'
    ]
    response = client.post("/api/suggestions/generate")
    assert response.json() == {"suggestions": [
        {"category": "Policy", "title": "Ban quarrying", "description": "Stop it.", "impact": "High"},
    ]}


def test_generate_suggestions_malformed(client, fake_llm):
    fake_llm.text_responses = ["no list here"]
    response = client.post("/api/suggestions/generate")
    assert response.status_code == 502
    assert response.json() == {"error": "AI returned no suggestions."}


# --- Admin: files ---
def test_admin_lists_files(client, admin_headers):
    response = client.get("/api/admin/files", headers=admin_headers)
    assert response.json() == {"files": ["static/app.js", "static/css/site.css", "static/index.html"]}


def test_admin_read_and_write_file(client, admin_headers):
    response = client.post("/api/admin/write-file", headers=admin_headers,
                           json={"path": "static/app.js", "content": "const color = 'red';\n"})
    assert response.json() == {"success": True}

    response = client.post("/api/admin/read-file", headers=admin_headers, json={"path": "static/app.js"})
    assert response.json() == {"content": "const color = 'red';\n"}


def test_admin_read_invalid_path(client, admin_headers):
    response = client.post("/api/admin/read-file", headers=admin_headers,
                           json={"path": "static/../secret.txt"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid path"}


def test_admin_read_missing_file(client, admin_headers):
    response = client.post("/api/admin/read-file", headers=admin_headers, json={"path": "static/nope.js"})
    assert response.status_code == 404
    assert response.json() == {"error": "File not found"}


def test_file_endpoints_require_admin(client, user_headers, source_tree):
    response = client.post("/api/admin/write-file", headers=user_headers,
                           json={"path": "static/app.js", "content": "hacked"})
    assert response.status_code == 403
    assert source_tree.read_file("static/app.js") == "const color = 'green';\n"


# --- Admin: builder ---
def test_builder_preview_then_apply(client, admin_headers, fake_llm, source_tree):
    fake_llm.json_responses = [
        {"files": ["static/index.html"]},
        {"static/index.html": "<h1>Aravalli Range Watch</h1>\n"},
    ]
    response = client.post("/api/admin/builder/preview", headers=admin_headers,
                           json={"prompt": "rename the heading"})
    assert response.status_code == 200
    body = response.json()
    assert body["state"] == "PreviewReady"
    assert body["message"] == "Preview generated for 1 files. Review the suggested changes below."
    assert body["changes"][0]["path"] == "static/index.html"
    assert source_tree.read_file("static/index.html") == "<h1>Aravalli Watch</h1>\n"

    changes = [{"path": c["path"], "updated": c["updated"]} for c in body["changes"]]
    response = client.post("/api/admin/builder/apply", headers=admin_headers, json={"changes": changes})
    assert response.json() == {"success": True, "state": "Applied", "files": ["static/index.html"]}
    assert source_tree.read_file("static/index.html") == "<h1>Aravalli Range Watch</h1>\n"


def test_builder_preview_records_prompt(client, admin_headers, fake_llm):
    fake_llm.json_responses = [{"files": ["static/app.js"]}, {"static/app.js": "x"}]
    client.post("/api/admin/builder/preview", headers=admin_headers, json={"prompt": "shorter code"})

    prompts = client.get("/api/admin/prompt-history", headers=admin_headers).json()["prompts"]
    assert prompts[0]["prompt"] == "shorter code"


def test_builder_preview_failure(client, admin_headers, fake_llm):
    fake_llm.json_responses = [{"files": []}]
    response = client.post("/api/admin/builder/preview", headers=admin_headers, json={"prompt": "???"})
    assert response.status_code == 502
    assert response.json() == {"error": "AI could not identify any files to edit for this request."}
    assert client.get("/api/admin/prompt-history", headers=admin_headers).json() == {"prompts": []}


def test_builder_apply_empty(client, admin_headers):
    response = client.post("/api/admin/builder/apply", headers=admin_headers, json={"changes": []})
    assert response.status_code == 400
    assert response.json() == {"error": "No changes to apply"}


# --- Admin: prompt history and stats ---
def test_prompt_history_newest_first_and_capped(client, admin_headers):
    for i in range(12):
        response = client.post("/api/admin/prompt-history", headers=admin_headers, json={"prompt": f"p{i}"})
        assert response.status_code == 201

    prompts = client.get("/api/admin/prompt-history", headers=admin_headers).json()["prompts"]
    assert [p["prompt"] for p in prompts] == [f"p{i}" for i in range(11, 1, -1)]


def test_prompt_history_rejects_blank(client, admin_headers):
    response = client.post("/api/admin/prompt-history", headers=admin_headers, json={"prompt": " "})
    assert response.status_code == 400
    assert response.json() == {"error": "Prompt is required"}


def test_admin_stats(client, admin_headers):
    client.post("/api/admin/prompt-history", headers=admin_headers, json={"prompt": "one"})
    stats = client.get("/api/admin/stats", headers=admin_headers).json()["stats"]
    assert stats["totalUsers"] == 2
    assert stats["aiRequests"] == 1
    assert stats["siteVersion"]


# --- Front end ---
def test_root_serves_front_end(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
