# pylint: disable=duplicate-code

import argparse
import warnings
from pathlib import Path

import numpy as np
from hyperparameters import make_hyperparameters
from metrics import create_metrics, modal_partition
from plots import create_diagnostic_plots
from samplers import run_parallel_chains
from utils import (
    add_gibbs_args,
    create_output_message,
    parse_all_prior_args,
    print_runtime_summary,
    print_trace_summary,
)

warnings.filterwarnings("ignore", category=DeprecationWarning)


def main(argv=None):
    """Run CRP Gibbs chains on a saved dataset and write samples, metrics and figures."""
    ap = argparse.ArgumentParser(
        description="Collapsed CRP Gibbs sampler for a Dirichlet process Gaussian mixture"
    )
    add_gibbs_args(ap)
    ap.add_argument("--data_root", type=str, default="../data", help="Data root")
    ap.add_argument(
        "--figure_root", type=str, default="../figures", help="Figure root"
    )
    ap.add_argument("--no_plots", action="store_true", help="Skip the PNG diagnostics")
    args = ap.parse_args(argv)

    data_dir = Path(args.data_root) / args.data
    y = np.load(data_dir / "data.npy")
    if y.ndim == 1:
        y = y[:, np.newaxis]

    m0, s0_2, sigma2 = parse_all_prior_args(args, y.shape[1])
    hyper = make_hyperparameters(args.alpha, y.shape[1], mu0=m0, sigma0=s0_2, sigma=sigma2)

    labels_file = data_dir / "labels.npy"
    true_labels = np.load(labels_file) if labels_file.exists() else None

    if args.verbose:
        print(f"Running {args.chains} CRP Gibbs chains…")
    results = run_parallel_chains(
        y,
        hyper,
        args.n_iter,
        burn=args.burn,
        base_seed=args.seed,
        n_chains=args.chains,
        thin=args.thin,
        init=args.init,
        selection=args.selection,
        mean_refresh=args.mean_refresh,
        time_budget=args.time_budget,
        verbose=args.verbose,
        loading_bar=args.loading_bar,
    )

    samples_dir = data_dir / "gibbs_samples"
    samples_dir.mkdir(parents=True, exist_ok=True)
    for c, result in enumerate(results):
        np.save(samples_dir / f"assignments_chain_{c + 1}.npy", result.assignments)
        np.save(samples_dir / f"final_means_chain_{c + 1}.npy", result.state.mu)

    burn = min(args.burn, min(r.n_sweeps for r in results) - 1)
    metrics = create_metrics(
        results, data_dir / "metrics.json", burn=burn, true_labels=true_labels
    )

    if not args.no_plots:
        create_diagnostic_plots(
            "gibbs", results, y, Path(args.figure_root) / args.data, burn=burn
        )

    if args.verbose:
        print("\n=== CRP GIBBS SUMMARY ===")
        print_trace_summary("K", metrics["n_clusters"])
        print()
        print_trace_summary("log joint", metrics["log_joint"])
        pooled = np.vstack([r.assignments for r in results])
        if len(pooled):
            _, freq = modal_partition(pooled)
            print(f"\nModal partition frequency: {freq:.2%}")
        if true_labels is not None:
            for c, agreement in enumerate(metrics["agreement"]):
                print(
                    f"Chain {c + 1}: misassignment "
                    f"{agreement['misassignment_rate']:.2%}, "
                    f"ARI {agreement['adjusted_rand_index']:.3f}"
                )

        print_runtime_summary([r.runtime for r in results], metrics["n_sweeps"])
        if not args.no_plots:
            print(create_output_message(Path(args.figure_root) / args.data))

    return metrics


if __name__ == "__main__":
    main()
