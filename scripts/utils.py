import numpy as np


def parse_prior_args(arg_str, dim, param_name):
    """Parse prior arguments that can be either scalar or vector.

    Args:
        arg_str: String containing comma-separated values or single value
        dim: Dimension of the observations
        param_name: Name of the parameter for error messages

    Returns:
        Scalar value or numpy array of size dim

    Raises:
        ValueError: If the number of values doesn't match dim
    """
    if arg_str is None:
        return None

    values = [float(x) for x in arg_str.split(",")]
    if len(values) == 1:
        return values[0]
    if len(values) == dim:
        return np.array(values)
    raise ValueError(
        f"{param_name} must be either scalar or have p={dim} values, got {len(values)}"
    )


def add_common_args(subparser):
    """Add common arguments to an argument parser.

    Args:
        subparser: ArgumentParser subparser to add arguments to
    """
    subparser.add_argument(
        "--data", type=str, default="example_1", help="Data directory"
    )
    subparser.add_argument(
        "--verbose", action="store_true", help="Indicates if verbose output is desired"
    )
    subparser.add_argument(
        "--loading_bar", action="store_true", help="Show a progress bar per chain"
    )


def add_sampling_args(subparser, n_iter=1000, burn=200):
    """Add sampling-related arguments to an argument parser.

    Args:
        subparser: ArgumentParser subparser to add arguments to
        n_iter: Default number of sweeps
        burn: Default burn-in period
    """
    subparser.add_argument(
        "--n_iter", type=int, default=n_iter, help="Number of sweeps"
    )
    subparser.add_argument("--burn", type=int, default=burn, help="Burn-in period")
    subparser.add_argument(
        "--thin", type=int, default=1, help="Keep every thin-th sweep after burn-in"
    )
    subparser.add_argument("--seed", type=int, default=0, help="Random seed")
    subparser.add_argument(
        "--time_budget",
        type=float,
        default=None,
        help="Wall-clock limit per chain in seconds",
    )


def add_prior_args(subparser):
    """Add prior parameter arguments to an argument parser.

    Args:
        subparser: ArgumentParser subparser to add arguments to
    """
    subparser.add_argument(
        "--alpha", type=float, default=1.0, help="CRP concentration parameter"
    )
    subparser.add_argument(
        "--m0",
        type=str,
        default="0.0",
        help="Base measure mean (scalar or comma-separated values)",
    )
    subparser.add_argument(
        "--s0_2",
        type=str,
        default="100.0",
        help="Base measure variances (scalar or comma-separated diagonal)",
    )
    subparser.add_argument(
        "--sigma2",
        type=str,
        default="1.0",
        help="Observation variances (scalar or comma-separated diagonal)",
    )


def add_chain_args(subparser):
    """Add chain-related arguments to an argument parser.

    Args:
        subparser: ArgumentParser subparser to add arguments to
    """
    subparser.add_argument("--chains", type=int, default=4, help="Number of chains")
    subparser.add_argument(
        "--init",
        type=str,
        default="single",
        choices=["single", "prior"],
        help="Start from one cluster or from a CRP prior draw",
    )
    subparser.add_argument(
        "--selection",
        type=str,
        default="sample",
        choices=["sample", "argmax"],
        help="Sample the new cluster or take the most probable one",
    )
    subparser.add_argument(
        "--mean_refresh",
        type=str,
        default="step",
        choices=["step", "sweep"],
        help="Redraw cluster means after every point or once per sweep",
    )


def add_gibbs_args(subparser):
    """Add all arguments for Gibbs sampler script.

    Args:
        subparser: ArgumentParser subparser to add arguments to
    """
    add_common_args(subparser)
    add_sampling_args(subparser, n_iter=1000, burn=200)
    add_chain_args(subparser)
    add_prior_args(subparser)


def parse_all_prior_args(args, dim):
    """Parse all prior arguments from command line args.

    Args:
        args: Parsed command line arguments
        dim: Dimension of the observations

    Returns:
        Tuple of (m0, s0_2, sigma2) parsed prior parameters
    """
    m0 = parse_prior_args(args.m0, dim, "m0")
    s0_2 = parse_prior_args(args.s0_2, dim, "s0_2")
    sigma2 = parse_prior_args(args.sigma2, dim, "sigma2")

    return m0, s0_2, sigma2


def print_trace_summary(name, summary):
    """Print formatted summary statistics of a scalar trace.

    Args:
        name: Name of the traced quantity
        summary: Dictionary with mean, ci_lower, ci_upper, rhat and ess
    """
    print(f"Posterior mean {name}  :", round(summary["mean"], 4))
    print(f"95% CI lower {name}    :", round(summary["ci_lower"], 4))
    print(f"95% CI upper {name}    :", round(summary["ci_upper"], 4))
    print(f"R‑hat ({name})         :", round(summary["rhat"], 3))
    print(f"ESS  ({name})          :", round(summary["ess"], 1))


def print_runtime_summary(times, n_sweeps=None):
    """Print runtime summary.

    Args:
        times: List of runtime values
        n_sweeps: List of completed sweeps per chain (optional)
    """
    print(f"\nMean runtime / chain: {np.mean(times):.2f}s")

    if n_sweeps is not None:
        print(f"Completed sweeps / chain: {list(n_sweeps)}")


def create_output_message(figure_dir):
    """Create standardized output message for diagnostic files.

    Args:
        figure_dir: Directory holding the figures

    Returns:
        Formatted output message string
    """
    return f"\nDiagnostic PNGs saved in {figure_dir}"
