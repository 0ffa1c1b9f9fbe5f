"""Unit tests for the text-extraction contract."""
from concurrent.futures import Future, ThreadPoolExecutor

import numpy as np
import pytest

from docgate.core.entities import ExtractionResult, PersonalData
from docgate.core.exceptions import ExtractionError
from docgate.services.text_extraction import (
    CallableTextExtractor, TextExtractor, as_text_extractor, load_extractor, run_extraction,
)

REGION = np.zeros((4, 4), np.uint8)
SUCCESS = ExtractionResult(
    success=True,
    confidence=0.88,
    personal_data=PersonalData(
        document_number="A12B34567", national_id="98765432100", name="JANE",
        surname="EXAMPLE", birth_date="900101", gender="M", expiry_date="300101",
    ),
)


class EchoExtractor:
    def extract(self, region):
        return SUCCESS


class TestAdapters:

    def test_object_with_extract_is_accepted(self):
        extractor = EchoExtractor()
        assert as_text_extractor(extractor) is extractor
        assert isinstance(extractor, TextExtractor)

    def test_callable_is_wrapped(self):
        def read_mrz(region):
            return SUCCESS

        extractor = as_text_extractor(read_mrz)
        assert isinstance(extractor, CallableTextExtractor)
        assert extractor.name == "read_mrz"
        assert extractor.extract(REGION) is SUCCESS

    def test_other_objects_rejected(self):
        with pytest.raises(TypeError):
            as_text_extractor(42)


class TestLoadExtractor:

    def test_class_is_instantiated(self):
        extractor = load_extractor(f"{__name__}:EchoExtractor")
        assert isinstance(extractor, EchoExtractor)

    def test_instance_without_extract_rejected(self):
        with pytest.raises(ExtractionError):
            load_extractor("collections:OrderedDict")

    def test_function_is_wrapped(self):
        extractor = load_extractor("os.path:basename")
        assert isinstance(extractor, CallableTextExtractor)

    @pytest.mark.parametrize("target", ["no_colon", ":attr", "module:", "docgate_missing_mod:x",
                                      "os.path:no_such_function"])
    def test_bad_targets(self, target):
        with pytest.raises(ExtractionError):
            load_extractor(target)


class TestRunExtraction:

    def test_success(self, inline_executor):
        future = run_extraction(EchoExtractor(), REGION, inline_executor)
        assert future.result() is SUCCESS

    def test_exception_becomes_failure(self, inline_executor):
        def broken(region):
            raise ValueError("no MRZ found")

        result = run_extraction(as_text_extractor(broken), REGION, inline_executor).result()
        assert not result.success
        assert result.error_message == "no MRZ found"

    def test_wrong_return_type_becomes_failure(self, inline_executor):
        result = run_extraction(as_text_extractor(lambda r: {"ok": True}), REGION, inline_executor).result()
        assert not result.success
        assert "dict" in result.error_message

    def test_nested_future(self, inline_executor):
        inner = Future()
        future = run_extraction(as_text_extractor(lambda r: inner), REGION, inline_executor)
        assert not future.done()

        inner.set_result(SUCCESS)
        assert future.result(timeout=1.0) is SUCCESS

    def test_nested_future_exception(self, inline_executor):
        inner = Future()
        future = run_extraction(as_text_extractor(lambda r: inner), REGION, inline_executor)
        inner.set_exception(TimeoutError("service unavailable"))

        assert future.result(timeout=1.0).error_message == "service unavailable"

    def test_cancelled_future(self, inline_executor):
        inner = Future()
        future = run_extraction(as_text_extractor(lambda r: inner), REGION, inline_executor)
        inner.cancel()

        assert future.result(timeout=1.0).error_message == "extraction cancelled"

    def test_shut_down_executor(self):
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()

        result = run_extraction(EchoExtractor(), REGION, executor).result(timeout=1.0)
        assert not result.success

    def test_thread_pool(self):
        with ThreadPoolExecutor(max_workers=1) as executor:
            result = run_extraction(EchoExtractor(), REGION, executor).result(timeout=5.0)
        assert result is SUCCESS
