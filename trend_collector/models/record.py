"""콘텐츠 레코드 데이터 모델"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

KIND_DESIGN = "design"
KIND_COMPETITION = "competition"
VALID_KINDS = {KIND_DESIGN, KIND_COMPETITION}

CATEGORY_ALL = "all"


@dataclass
class Engagement:
    """소스에서 수집한 반응 지표 (음이 아닌 정수)."""

    likes: int = 0
    views: int = 0
    saves: int = 0


@dataclass
class ContentRecord:
    """
    수집된 콘텐츠 항목 (공모전 또는 디자인).

    source_url이 정규 식별자: 재수집되어도 같은 항목이면 같은 URL.
    id, seq는 저장소가 부여한다.
    """

    # 식별자 (저장소 부여)
    id: str = ""
    seq: int = 0

    # 출처
    kind: str = KIND_DESIGN
    source_platform: str = ""
    source_id: str = ""
    source_url: str = ""

    # 핵심 콘텐츠
    category: str = CATEGORY_ALL
    title: str = ""
    description: str = ""
    image_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    # 시각
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # 반응 지표
    engagement: Engagement = field(default_factory=Engagement)
    is_platform_trending: bool = False

    # 공모전 전용 필드
    deadline: Optional[datetime] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("published_at", "created_at", "updated_at", "deadline"):
            value = data.get(key)
            data[key] = value.isoformat() if value else None
        return data
