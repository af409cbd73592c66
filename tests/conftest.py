"""Shared fixtures: chat page markup, drafts, stores, and a fake quota source."""

import pytest

from chat_archiver.capture.models import CapturePayload, ConversationDraft
from chat_archiver.extraction.models import AI, USER, ParsedMessage
from chat_archiver.page.snapshot import PageSnapshot
from chat_archiver.storage.database import ConversationStore
from chat_archiver.storage.limits import StorageEstimator, StorageGuard

CHATGPT_HTML = """
<html><head><title>ChatGPT</title></head>
<body>
  <nav><a href="/">New chat</a><div>Search chats</div></nav>
  <main>
    <h1>Python sorting help</h1>
    <div data-testid="conversation-turn-1">
      <div data-message-author-role="user">
        <div class="whitespace-pre-wrap">How do I sort a list of tuples by the second element?</div>
      </div>
    </div>
    <div data-testid="conversation-turn-2">
      <div data-message-author-role="assistant">
        <div class="markdown prose"><p>Use sorted with a key function.</p></div>
      </div>
      <button>Copy</button>
    </div>
    <div data-testid="conversation-turn-3">
      <div data-message-author-role="user">
        <div class="whitespace-pre-wrap">And in reverse order?</div>
      </div>
    </div>
    <div data-testid="conversation-turn-4">
      <div data-message-author-role="assistant">
        <div class="markdown prose"><p>Pass reverse=True to sorted.</p></div>
      </div>
    </div>
  </main>
  <form><div contenteditable="true">Message ChatGPT</div></form>
</body></html>
"""

CLAUDE_HTML = """
<html><head><title>Claude</title></head>
<body>
  <main>
    <div class="flex-1 flex flex-col">
      <div class="conversation-flow">
        <div class="mb-1 mt-1">
          <div data-testid="user-message"><p>Explain recursion in one sentence please</p></div>
        </div>
        <div class="group relative">
          <div class="font-claude-message"><p>Recursion is when a function solves a problem by calling itself on smaller inputs.</p></div>
          <div><button data-testid="action-bar-copy">Copy</button></div>
        </div>
        <div class="mb-1 mt-1">
          <div data-testid="user-message"><p>Give an example</p></div>
        </div>
        <div class="group relative">
          <div class="font-claude-message"><p>Computing a factorial: n! = n * (n-1)!</p></div>
          <div><button data-testid="action-bar-copy">Copy</button></div>
        </div>
      </div>
    </div>
  </main>
  <footer>Claude can make mistakes.</footer>
</body></html>
"""

GEMINI_HTML = """
<html><head><title>Google Gemini</title></head>
<body>
  <main>
    <div class="conversation-container">
      <user-query class="user-query">
        <div class="query-text">You said What is the capital of France? I need it for a quiz</div>
      </user-query>
      <model-response class="model-response">
        <div class="markdown">The capital of France is Paris.</div>
      </model-response>
    </div>
  </main>
</body></html>
"""

DEEPSEEK_HTML = """
<html><head><title>DeepSeek - Into the Unknown</title></head>
<body>
  <aside class="sidebar"><div class="ds-message">Previous chat about databases</div></aside>
  <main>
    <div class="ds-message user-message"><div class="fbb737a4">What is 2 + 2?</div></div>
    <div class="ds-message"><div class="ds-markdown"><p>2 + 2 equals 4.</p></div></div>
  </main>
</body></html>
"""

QWEN_HTML = """
<html><head><title>Qwen Chat</title></head>
<body>
  <aside class="sidebar">
    <div class="session-list">
      <div class="chat-message-item">Old conversation about travel plans</div>
    </div>
  </aside>
  <main>
    <div class="chat-window">
      <div class="questionItem">
        <div class="bubble">What is the tallest mountain in the world. Please answer briefly</div>
      </div>
      <div class="answerItem">
        <div class="bubble-element">Mount Everest is the tallest mountain above sea level.</div>
      </div>
    </div>
  </main>
</body></html>
"""

DOUBAO_HTML = """
<html><head><title>豆包</title></head>
<body>
  <main>
    <div data-testid="message-block-container">
      <div data-testid="send_message">
        <div data-testid="message_text_content">帮我写一首关于春天的诗</div>
      </div>
    </div>
    <div data-testid="message-block-container">
      <div data-testid="receive_message">
        <div data-testid="message_text_content">春风拂面花自开，燕子归来绿满台。</div>
      </div>
    </div>
  </main>
</body></html>
"""

CHATGPT_URL = "https://chatgpt.com/c/6650a1b2-c3d4-e5f6"
CLAUDE_URL = "https://claude.ai/chat/8c5a2e1f-1234-4bcd-9ef0-abcdef123456"
GEMINI_URL = "https://gemini.google.com/app/3f2a9c1d7e8b"
DEEPSEEK_URL = "https://chat.deepseek.com/a/chat/s/5f1e2d3c-4b5a-6978"
QWEN_URL = "https://chat.qwen.ai/c/0d9e8f7a-6b5c-4d3e"
DOUBAO_URL = "https://www.doubao.com/chat/1234567890123"


class FakeEstimator(StorageEstimator):
    """Reports a fixed usage figure."""

    def __init__(self, usage: int = 0, quota: int | None = None, local: int = 0):
        self.usage = usage
        self.quota = quota
        self.local = local

    def estimate(self):
        return self.usage, self.quota

    def local_bytes(self):
        return self.local


@pytest.fixture
def chatgpt_page():
    return PageSnapshot(CHATGPT_HTML, CHATGPT_URL)


@pytest.fixture
def claude_page():
    return PageSnapshot(CLAUDE_HTML, CLAUDE_URL)


@pytest.fixture
def gemini_page():
    return PageSnapshot(GEMINI_HTML, GEMINI_URL)


@pytest.fixture
def deepseek_page():
    return PageSnapshot(DEEPSEEK_HTML, DEEPSEEK_URL)


@pytest.fixture
def qwen_page():
    return PageSnapshot(QWEN_HTML, QWEN_URL)


@pytest.fixture
def doubao_page():
    return PageSnapshot(DOUBAO_HTML, DOUBAO_URL)


@pytest.fixture
def store():
    s = ConversationStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def fake_estimator():
    return FakeEstimator


@pytest.fixture
def guard():
    return StorageGuard(FakeEstimator(usage=0))


@pytest.fixture
def make_messages():
    def _make(count: int, prefix: str = "message") -> list[ParsedMessage]:
        return [
            ParsedMessage(role=USER if i % 2 == 0 else AI, text=f"{prefix} {i}")
            for i in range(count)
        ]

    return _make


@pytest.fixture
def make_draft():
    def _make(external_id: str = "conv-12345678", **overrides) -> ConversationDraft:
        fields = {
            "external_id": external_id,
            "platform": "ChatGPT",
            "title": "Sorting help",
            "snippet": "How do I sort",
            "source_url": f"https://chatgpt.com/c/{external_id}",
            "captured_at": 1_700_000_000_000,
            "updated_at": 1_700_000_000_000,
            "message_count": 0,
            "turn_count": 0,
        }
        fields.update(overrides)
        return ConversationDraft(**fields)

    return _make


@pytest.fixture
def make_payload(make_draft, make_messages):
    def _make(
        message_count: int = 4,
        external_id: str = "conv-12345678",
        force_flag: bool = False,
        **draft_overrides,
    ) -> CapturePayload:
        messages = make_messages(message_count)
        draft = make_draft(
            external_id,
            message_count=message_count,
            turn_count=message_count // 2,
            **draft_overrides,
        )
        return CapturePayload(conversation=draft, messages=messages, force_flag=force_flag)

    return _make
