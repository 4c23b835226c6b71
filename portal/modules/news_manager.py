"""
News Manager Module - School Portal

News items posted by admins, newest first. The page shows at most
``list_limit`` items; an optional ``file_url`` links an attachment.
"""

from typing import Any, Dict, List

from .content_manager import ContentManager
from .models import News, NEWS, sort_key_timestamp, utc_now_iso


class NewsManager(ContentManager):
    """
    Create, list and delete news items.
    """

    collection_name = NEWS
    kind = 'news'
    model = News
    required_fields = ('title', 'description')
    optional_fields = ('file_url',)
    list_limit = 50

    def __init__(self, *args, list_limit: int = 50, **kwargs):
        super().__init__(*args, **kwargs)
        self.list_limit = list_limit

    def build_record(self, fields: Dict[str, Any], record_id: str,
                     author_email: str) -> Dict[str, Any]:
        return News(
            id=record_id,
            title=fields['title'],
            description=fields['description'],
            author_email=author_email,
            timestamp=utc_now_iso(),
            file_url=fields.get('file_url')
        ).to_record()

    def sort(self, items: List[News]) -> List[News]:
        return sorted(items, key=lambda item: sort_key_timestamp(item.timestamp), reverse=True)
