import mimetypes
from io import BytesIO
from flask import abort, current_app, send_file
from . import bp
from ...services import storage

# guess_type maps some of these to video/*
_AUDIO_TYPES = {'webm': 'audio/webm', 'ogg': 'audio/ogg', 'm4a': 'audio/mp4', 'mp3': 'audio/mpeg', 'wav': 'audio/wav'}


@bp.get("/<token>")
def signed_object(token):
    """Serve a locally stored object behind a signed, time-limited link."""
    try:
        key = storage.resolve_signed_token(token, max_age=current_app.config.get('SIGNED_URL_TTL', 3600))
        data = storage.read_bytes(key)
    except storage.ObjectMissing:
        abort(404)
    except storage.StorageError:
        current_app.logger.exception('Failed to read signed object')
        abort(502)
    ext = key.rsplit('.', 1)[-1].lower()
    mimetype = _AUDIO_TYPES.get(ext) or mimetypes.guess_type(key)[0] or 'application/octet-stream'
    return send_file(BytesIO(data), mimetype=mimetype, download_name=key.rsplit('/', 1)[-1], max_age=0)
