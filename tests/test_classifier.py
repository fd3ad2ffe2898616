"""
Tests for the FOD classifier — ATerm output parsing and fail-closed policy.
"""

import logging

import pytest

from fodcheck.adapters.mock import (
    MockStoreClient,
    aterm_derivation,
    fixed_output_derivation,
    input_addressed_derivation,
)
from fodcheck.core.engine.classifier import classify, is_fixed_output, parse_outputs
from fodcheck.core.errors import ClassificationError

REAL_FOD = (
    'Derive([("out","/nix/store/6vsr-hello-2.12.1.tar.gz","sha256",'
    '"8d99142afd92576f30b0cd7cb42a8dc6809998bc5d607d88761f512e26c7db20")],'
    '[],[],"x86_64-linux","builtin:fetchurl",[],'
    '[("builder","builtin:fetchurl"),("name","hello-2.12.1.tar.gz")])'
)


class TestParseOutputs:
    def test_single_output(self):
        outputs = parse_outputs(REAL_FOD)
        assert len(outputs) == 1
        assert outputs[0].name == "out"
        assert outputs[0].path == "/nix/store/6vsr-hello-2.12.1.tar.gz"
        assert outputs[0].hash_algo == "sha256"

    def test_multiple_outputs(self):
        text = aterm_derivation([
            ("dev", "/nix/store/x-dev", "", ""),
            ("out", "/nix/store/x", "", ""),
        ])
        assert [o.name for o in parse_outputs(text)] == ["dev", "out"]

    def test_whitespace_between_tokens(self):
        text = 'Derive(\n  [ ( "out" , "/nix/store/x" , "sha256" , "abc" ) ] , [])'
        assert parse_outputs(text)[0].hash == "abc"

    def test_escaped_strings(self):
        text = r'Derive([("o\"ut","/nix/store/x\\y","sha256","a\nb")],[])'
        output = parse_outputs(text)[0]
        assert output.name == 'o"ut'
        assert output.path == "/nix/store/x\\y"
        assert output.hash == "a\nb"

    def test_empty_output_list(self):
        assert parse_outputs("Derive([],[])") == []

    def test_not_a_derivation(self):
        with pytest.raises(ClassificationError):
            parse_outputs("#!/bin/sh\necho hi\n")

    def test_truncated(self):
        with pytest.raises(ClassificationError):
            parse_outputs('Derive([("out","/nix/store/x","sha2')

    def test_wrong_arity(self):
        with pytest.raises(ClassificationError):
            parse_outputs('Derive([("out","/nix/store/x","sha256")],[])')


class TestIsFixedOutput:
    def test_fixed_output(self):
        assert is_fixed_output(REAL_FOD)
        assert is_fixed_output(fixed_output_derivation("src"))

    def test_input_addressed(self):
        assert not is_fixed_output(input_addressed_derivation("pkg"))

    def test_floating_content_addressed(self):
        text = aterm_derivation([("out", "", "r:sha256", "")])
        assert not is_fixed_output(text)

    def test_more_than_one_output_is_not_fod(self):
        text = aterm_derivation([
            ("out", "/nix/store/a", "sha256", "abc"),
            ("doc", "/nix/store/b", "sha256", "def"),
        ])
        assert not is_fixed_output(text)

    def test_no_outputs_is_not_fod(self):
        assert not is_fixed_output("Derive([],[])")


class TestClassify:
    def test_fod(self):
        client = MockStoreClient(derivations={"/nix/store/s.drv": REAL_FOD})
        assert classify(client, "/nix/store/s.drv")

    def test_non_derivation_is_skipped_without_reading(self):
        client = MockStoreClient()
        assert not classify(client, "/nix/store/pppp-fix.patch")
        assert client.calls("read_derivation") == []

    def test_unreadable_is_not_fod(self, caplog):
        client = MockStoreClient()
        with caplog.at_level(logging.WARNING):
            assert not classify(client, "/nix/store/gone.drv")
        assert "/nix/store/gone.drv" in caplog.text
        assert "assuming not" in caplog.text

    def test_malformed_is_not_fod(self, caplog):
        client = MockStoreClient(derivations={"/nix/store/bad.drv": "garbage"})
        with caplog.at_level(logging.WARNING):
            assert not classify(client, "/nix/store/bad.drv")
        assert "/nix/store/bad.drv" in caplog.text
