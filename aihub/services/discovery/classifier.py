"""Keyword-based category classifier for catalog services.

A cheap, explainable heuristic rather than a model: each category owns a
keyword list and a text scores one point per keyword it contains. The
AUTO_APPROVE_CONFIDENCE and CATEGORY_DRIFT_CONFIDENCE settings are tuned
against these lists, so change them together.
"""
from dataclasses import dataclass, field

DEFAULT_CATEGORY = "productivity"

# Order matters: on equal scores the category listed first wins.
CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "indie-dev": [
        "indie", "side project", "solo developer", "personal project", "hobby project",
        "개인개발", "사이드 프로젝트", "1인 개발", "인디 개발", "솔로 개발자",
        "maker", "bootstrapped", "open source", "pet project",
    ],
    "text-generation": [
        "gpt", "llm", "chatbot", "chat", "language model", "conversational",
        "챗봇", "대화", "언어 모델", "ai assistant", "copilot",
    ],
    "image-generation": [
        "image generat", "text to image", "diffusion", "dall-e", "midjourney",
        "stable diffusion", "이미지 생성", "art generat", "ai art",
    ],
    "image-editing": [
        "image edit", "photo edit", "enhance", "upscale", "remove background",
        "이미지 편집", "사진 편집", "retouch",
    ],
    "code-assistant": [
        "code", "programming", "ide", "developer tool", "coding", "github copilot",
        "코딩", "개발", "debug", "software development",
    ],
    "productivity": [
        "productivity", "workflow", "automation", "project management", "notion",
        "생산성", "자동화", "업무", "task management", "scheduling",
    ],
    "voice-speech": [
        "speech", "voice", "tts", "stt", "text to speech", "speech to text",
        "음성", "목소리", "audio", "transcription", "dictation",
    ],
    "education": [
        "education", "learning", "tutor", "course", "study", "quiz",
        "교육", "학습", "튜터", "e-learning", "training",
    ],
    "video": [
        "video", "animation", "motion", "film", "editing video",
        "영상", "비디오", "애니메이션",
    ],
    "data-analysis": [
        "analytics", "data", "visualization", "dashboard", "insight", "report",
        "분석", "데이터", "시각화", "chart", "statistics",
    ],
    "writing": [
        "writing", "grammar", "copywriting", "content creation", "blog",
        "글쓰기", "작문", "교정", "proofreading", "essay",
    ],
    "translation": [
        "translat", "multilingual", "localization", "interpret",
        "번역", "통역", "다국어",
    ],
    "healthcare": [
        "medical", "health", "diagnosis", "clinical", "patient", "biomedical",
        "의료", "건강", "진단", "헬스케어",
    ],
    "korean-llm": [
        "clova", "hyperclova", "한국어", "korean language", "뤼튼", "wrtn",
        "upstage", "solar",
    ],
}


@dataclass
class CategorySuggestion:
    """Winning category with its confidence and up to three runners-up."""

    primary: str
    confidence: float
    alternatives: list[str] = field(default_factory=list)


def suggest_category(text: str) -> CategorySuggestion:
    """
    Classify free text into a catalog category.

    confidence is the share of the winning category's keywords found in
    the text, clamped to [0, 1]. Text with no keyword hits falls back to
    DEFAULT_CATEGORY with confidence 0.
    """
    lower_text = text.lower()
    scores: list[tuple[str, int]] = []

    for category, keywords in CATEGORY_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword.lower() in lower_text)
        if score > 0:
            scores.append((category, score))

    if not scores:
        return CategorySuggestion(primary=DEFAULT_CATEGORY, confidence=0.0)

    # sorted() is stable, so equal scores keep table order
    ranked = sorted(scores, key=lambda item: item[1], reverse=True)
    primary, max_score = ranked[0]
    confidence = min(max_score / len(CATEGORY_KEYWORDS[primary]), 1.0)

    return CategorySuggestion(
        primary=primary,
        confidence=confidence,
        alternatives=[category for category, _ in ranked[1:4]],
    )
