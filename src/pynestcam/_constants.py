"""Internal constants shared across the library."""

API_URL = "https://developer-api.nest.com"
SINK_URL = "https://api.graph.cool/simple/v1/cj7xs5bov18hb0147so01lnto"
USER_AGENT = "pynestcam/0"

# ------------------------------------------------------------------
# Public share rendering
# ------------------------------------------------------------------

AUTOPLAY_QUERY = "?autoplay=1"
EMBED_WIDTH = 1280
EMBED_HEIGHT = 720
EMBED_TEMPLATE = (
    '<iframe type="text/html" frameborder="0" width="{width}" height="{height}" src="{url}" allowfullscreen></iframe>'
)

# ------------------------------------------------------------------
# Remote event log
# ------------------------------------------------------------------

CREATE_MOTION_EVENT_MUTATION = """
mutation createMotionEvent ($cameraId: String!, $cameraName: String!, $eventDate: DateTime!, $image: String!) {
    createMotionEvent(cameraId: $cameraId, cameraName: $cameraName, eventDate: $eventDate, image: $image) {
        id
    }
}
""".strip()
