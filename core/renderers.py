"""
JSON renderer that wraps successful payloads in the API envelope.
"""
from rest_framework.renderers import JSONRenderer


class EnvelopeJSONRenderer(JSONRenderer):
    """
    Wrap plain serializer output as ``{success: true, data: ...}``.

    Lists also get a ``count``. Payloads that already carry a ``success`` key
    (error responses, views that add a message) pass through untouched.
    """

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = (renderer_context or {}).get('response')
        if response is not None and response.status_code != 204 and not response.exception:
            if not (isinstance(data, dict) and 'success' in data):
                envelope = {'success': True}
                if isinstance(data, list):
                    envelope['count'] = len(data)
                envelope['data'] = data
                data = envelope
        return super().render(data, accepted_media_type, renderer_context)
