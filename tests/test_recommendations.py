"""
Recommendation generator tests.

The generative capability is replaced by local doubles; the generator must
fall back deterministically on every failure mode and never raise.
"""

import threading
import time
import unittest
import requests

from certengine import (
    GenerationError,
    GenerationPool,
    HttpTextGenerator,
    RecommendationContext,
    RecommendationGenerator,
)
from certengine.recommendations import (
    BASELINE_RECOMMENDATIONS,
    HIGH_RISK_RECOMMENDATIONS,
    LOW_MATURITY_RECOMMENDATIONS,
    NullTextGenerator,
    TextGenerator,
)


class StaticGenerator(TextGenerator):
    def __init__(self, content):
        self.content = content
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return {"content": self.content}


class FailingGenerator(TextGenerator):
    def generate(self, prompt):
        raise RuntimeError("upstream unavailable")


class BlockingGenerator(TextGenerator):
    def __init__(self):
        self.release = threading.Event()

    def generate(self, prompt):
        self.release.wait(5)
        return {"content": "Too late"}


class MalformedGenerator(TextGenerator):
    def generate(self, prompt):
        return ["not", "a", "dict"]


def context(**overrides):
    base = dict(
        organization_name="Acme SAS",
        certificate_type="compliance_summary",
        risk_level="minimal",
        risk_score=16,
        maturity_level="managed",
        maturity_score=70,
    )
    base.update(overrides)
    return RecommendationContext(**base)


class TestFallback(unittest.TestCase):

    def setUp(self):
        self.gen = RecommendationGenerator(NullTextGenerator(), timeout=1)

    def test_high_risk_low_maturity(self):
        items = self.gen.generate(context(risk_level="high", maturity_score=40))
        self.assertEqual(items, HIGH_RISK_RECOMMENDATIONS + LOW_MATURITY_RECOMMENDATIONS)

    def test_unacceptable_without_maturity(self):
        items = self.gen.generate(context(risk_level="unacceptable", maturity_level=None, maturity_score=None))
        self.assertEqual(items, HIGH_RISK_RECOMMENDATIONS + BASELINE_RECOMMENDATIONS)

    def test_low_maturity_only(self):
        items = self.gen.generate(context(maturity_score=59))
        self.assertEqual(items, LOW_MATURITY_RECOMMENDATIONS + BASELINE_RECOMMENDATIONS)

    def test_baseline_only(self):
        items = self.gen.generate(context(maturity_score=60))
        self.assertEqual(items, BASELINE_RECOMMENDATIONS)


class TestGenerativePath(unittest.TestCase):

    def setUp(self):
        self.pool = GenerationPool(max_workers=2)

    def tearDown(self):
        self.pool.shutdown(wait=False)

    def make(self, text_generator, timeout=2.0):
        return RecommendationGenerator(text_generator, timeout=timeout, pool=self.pool)

    def test_strips_markers_and_blank_lines(self):
        content = "1. Appoint an AI officer\n\n- Map all AI systems\n* Train staff\n2) Log decisions\n"
        items = self.make(StaticGenerator(content)).generate(context())
        self.assertEqual(items, [
            "Appoint an AI officer",
            "Map all AI systems",
            "Train staff",
            "Log decisions",
        ])

    def test_truncates_to_five(self):
        content = "\n".join(f"{i}. Step {i}" for i in range(1, 9))
        items = self.make(StaticGenerator(content)).generate(context())
        self.assertEqual(items, ["Step 1", "Step 2", "Step 3", "Step 4", "Step 5"])

    def test_prompt_carries_context(self):
        double = StaticGenerator("Do something")
        self.make(double).generate(context(language="fr", system_name="HR screener"))
        prompt = double.prompts[0]
        self.assertIn("Acme SAS", prompt)
        self.assertIn("HR screener", prompt)
        self.assertIn("'fr'", prompt)

    def test_failure_falls_back(self):
        items = self.make(FailingGenerator()).generate(context(risk_level="high"))
        self.assertEqual(items, HIGH_RISK_RECOMMENDATIONS + BASELINE_RECOMMENDATIONS)

    def test_empty_content_falls_back(self):
        items = self.make(StaticGenerator("  \n\n- \n")).generate(context())
        self.assertEqual(items, BASELINE_RECOMMENDATIONS)

    def test_malformed_reply_falls_back(self):
        items = self.make(MalformedGenerator()).generate(context())
        self.assertEqual(items, BASELINE_RECOMMENDATIONS)

    def test_timeout_falls_back_promptly(self):
        double = BlockingGenerator()
        try:
            start = time.monotonic()
            items = self.make(double, timeout=0.1).generate(context())
            elapsed = time.monotonic() - start
        finally:
            double.release.set()
        self.assertEqual(items, BASELINE_RECOMMENDATIONS)
        self.assertLess(elapsed, 2.0)

    def test_always_one_to_five_items(self):
        for double in (StaticGenerator("x"), FailingGenerator(), StaticGenerator("")):
            for risk in ("minimal", "limited", "high", "unacceptable", None):
                for maturity in (None, 10, 90):
                    items = self.make(double).generate(context(risk_level=risk, maturity_score=maturity))
                    with self.subTest(double=type(double).__name__, risk=risk, maturity=maturity):
                        self.assertTrue(1 <= len(items) <= 5)
                        self.assertTrue(all(isinstance(i, str) and i.strip() for i in items))

    def test_busy_workers_fall_back_without_waiting(self):
        stuck = [BlockingGenerator(), BlockingGenerator()]
        try:
            for double in stuck:
                self.make(double, timeout=0.05).generate(context())

            responsive = StaticGenerator("Appoint an AI officer")
            start = time.monotonic()
            items = self.make(responsive, timeout=1.0).generate(context())
            elapsed = time.monotonic() - start
        finally:
            for double in stuck:
                double.release.set()
        self.assertEqual(items, BASELINE_RECOMMENDATIONS)
        self.assertEqual(responsive.prompts, [])
        self.assertLess(elapsed, 0.5)

    def test_worker_freed_after_call_returns(self):
        double = BlockingGenerator()
        self.make(double, timeout=0.05).generate(context())
        double.release.set()
        deadline = time.monotonic() + 2.0
        items = []
        while time.monotonic() < deadline:
            items = self.make(StaticGenerator("Map all AI systems")).generate(context())
            if items == ["Map all AI systems"]:
                break
            time.sleep(0.01)
        self.assertEqual(items, ["Map all AI systems"])

    def test_pool_refuses_when_full(self):
        pool = GenerationPool(max_workers=1)
        gate = threading.Event()
        try:
            pool.submit(gate.wait, 5)
            with self.assertRaises(GenerationError):
                pool.submit(gate.wait, 5)
        finally:
            gate.set()
            pool.shutdown(wait=True)


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


class TestHttpTextGenerator(unittest.TestCase):

    def test_chat_completion_content(self):
        session = FakeSession(FakeResponse({"choices": [{"message": {"content": "1. Audit"}}]}))
        gen = HttpTextGenerator("http://llm.local/v1/chat/completions", api_key="k",
                                timeout=3, session=session)
        self.assertEqual(gen.generate("prompt"), {"content": "1. Audit"})
        call = session.calls[0]
        self.assertEqual(call["timeout"], 3)
        self.assertEqual(call["headers"]["Authorization"], "Bearer k")
        self.assertEqual(call["json"]["messages"][-1]["content"], "prompt")

    def test_transport_error_raises_generation_error(self):
        gen = HttpTextGenerator("http://llm.local", session=FakeSession(error=requests.ConnectionError("down")))
        with self.assertRaises(GenerationError):
            gen.generate("prompt")

    def test_http_error_raises_generation_error(self):
        gen = HttpTextGenerator("http://llm.local", session=FakeSession(FakeResponse({}, status=503)))
        with self.assertRaises(GenerationError):
            gen.generate("prompt")

    def test_unexpected_shape_raises_generation_error(self):
        gen = HttpTextGenerator("http://llm.local", session=FakeSession(FakeResponse({"choices": []})))
        with self.assertRaises(GenerationError):
            gen.generate("prompt")


if __name__ == "__main__":
    unittest.main()
