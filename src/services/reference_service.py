"""
Criminal code reference table
"""

import logging
from typing import List

from models.prosecutor import CriminalCodeItem
from services.base_service import BaseService

logger = logging.getLogger(__name__)

# Seeded into an empty store on first start
DEFAULT_CRIMINAL_CODE = [
    {"article": "1", "title": "Nhiệm vụ của Bộ luật hình sự"},
    {"article": "2", "title": "Cơ sở của trách nhiệm hình sự"},
    {"article": "3", "title": "Nguyên tắc xử lý"},
    {"article": "4", "title": "Trách nhiệm phòng ngừa và đấu tranh chống tội phạm"},
    {"article": "123", "title": "Tội giết người"},
    {"article": "134", "title": "Tội cố ý gây thương tích hoặc gây tổn hại cho sức khỏe của người khác"},
    {"article": "168", "title": "Tội cướp tài sản"},
    {"article": "173", "title": "Tội trộm cắp tài sản"},
    {"article": "174", "title": "Tội lừa đảo chiếm đoạt tài sản"},
    {"article": "249", "title": "Tội tàng trữ trái phép chất ma túy"},
    {"article": "251", "title": "Tội mua bán trái phép chất ma túy"},
    {"article": "260", "title": "Tội vi phạm quy định về tham gia giao thông đường bộ"},
    {"article": "318", "title": "Tội gây rối trật tự công cộng"},
    {"article": "321", "title": "Tội đánh bạc"},
]


class CriminalCodeService(BaseService[CriminalCodeItem]):
    collection = "criminalCodeReference"
    model = CriminalCodeItem
    key_field = "article"
    label = "criminal code article"

    def seed_defaults(self) -> bool:
        """Fill an empty table with the default articles; True if seeded"""
        if self.count():
            return False
        self.replace_all(CriminalCodeItem.model_validate(item) for item in DEFAULT_CRIMINAL_CODE)
        self._touch()
        logger.info(f"Seeded {self.count()} criminal code articles")
        return True

    def search(self, query: str) -> List[CriminalCodeItem]:
        if not query or not query.strip():
            return []
        term = query.strip().lower()
        return [
            item for item in self.list()
            if term in item.article
            or term in item.title.lower()
            or term in item.description.lower()
        ]
