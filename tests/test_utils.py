import argparse

import numpy as np
import pytest
from utils import add_gibbs_args, parse_all_prior_args, parse_prior_args


def test_parse_prior_args():
    assert parse_prior_args("2.5", 3, "m0") == 2.5
    np.testing.assert_allclose(parse_prior_args("1,2,3", 3, "m0"), [1.0, 2.0, 3.0])
    assert parse_prior_args(None, 3, "m0") is None

    with pytest.raises(ValueError):
        parse_prior_args("1,2", 3, "m0")


def test_gibbs_args_defaults():
    ap = argparse.ArgumentParser()
    add_gibbs_args(ap)

    args = ap.parse_args([])

    assert args.data == "example_1"
    assert args.selection == "sample"
    assert args.init == "single"
    assert args.mean_refresh == "step"
    assert args.alpha == 1.0
    assert args.time_budget is None
    assert parse_all_prior_args(args, 2) == (0.0, 100.0, 1.0)


def test_gibbs_args_reject_unknown_selection():
    ap = argparse.ArgumentParser()
    add_gibbs_args(ap)

    with pytest.raises(SystemExit):
        ap.parse_args(["--selection", "mode"])
