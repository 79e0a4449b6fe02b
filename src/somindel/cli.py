from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .bam import check_bam_index, clean_bam_region
from .options import PileupCleanerOptions, ScoringMode, SomaticIndelFilterOptions
from .pipeline import write_somatic_indel_vcf
from .plotting import plot_af_hist, plot_filter_counts
from .report import render_report
from .scoring import LogisticScoringModel, ScoringModel
from .toy_data import make_toy_data


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _fraction(s: str) -> float:
    v = float(s)
    if not 0.0 <= v <= 1.0:
        raise argparse.ArgumentTypeError(f"Expected a value in [0,1], got {s}")
    return v


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="somindel",
        description=(
            "somindel: somatic indel filtering, empirical scoring and VCF output for "
            "tumor/normal pairs, plus pileup cleaning utilities."
        ),
    )
    p.add_argument("--version", action="version", version=f"somindel {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate tiny candidate/window inputs, a scoring model, and a BAM for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # write-vcf
    # -----------------
    w = sub.add_parser(
        "write-vcf",
        help="Filter, score and write cached somatic indel candidates as VCF.",
    )
    w.add_argument("--calls", required=True, type=_path_exists, help="Candidate indels (JSON lines, .gz ok).")
    w.add_argument(
        "--windows",
        required=True,
        type=_path_exists,
        help="Flank-window basecall averages per position (JSON lines, sorted).",
    )
    w.add_argument("--chrom", required=True, help="Chromosome name written to the CHROM column.")
    w.add_argument("--outdir", required=True, help="Output directory.")
    w.add_argument("--vcf-name", default="somatic.indels.vcf", help="Output VCF file name (.gz for gzip).")
    w.add_argument(
        "--max-depth",
        type=float,
        default=None,
        help="Set HighDepth when normal tier1 depth exceeds this (default: disabled).",
    )
    w.add_argument(
        "--indel-max-window-filtered-basecall-frac",
        type=_fraction,
        default=0.3,
        help="Legacy mode: IndelBCNoise when a sample's window filtered fraction is >= this.",
    )
    w.add_argument(
        "--sindel-quality-lower-bound",
        type=int,
        default=30,
        help="Legacy mode: QSI_ref when QSI_NT is below this.",
    )
    w.add_argument(
        "--scoring-mode",
        choices=[m.value for m in ScoringMode],
        default=ScoringMode.LEGACY.value,
        help="Site filter family: legacy thresholds or empirical model.",
    )
    w.add_argument(
        "--scoring-model",
        default=None,
        type=_path_exists,
        help="Logistic scoring model JSON (enables EQSI).",
    )
    w.add_argument(
        "--indel-region-flank-size",
        type=int,
        default=50,
        help="Flank window size; written into the BCN FORMAT key.",
    )
    w.add_argument("--reference", default=None, help="Reference path recorded in the VCF header.")
    w.add_argument("--contig-length", type=int, default=None, help="Contig length for the VCF header.")
    w.add_argument("--no-report", action="store_true", help="Do not write plots and report.html.")
    w.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    w.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # clean-pileup
    # -----------------
    c = sub.add_parser(
        "clean-pileup",
        help="Clean BAM pileups over a region and report used calls and error probabilities.",
    )
    c.add_argument("--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    c.add_argument("--contig", required=True, help="Contig to process.")
    c.add_argument("--start", type=int, default=None, help="0-based region start.")
    c.add_argument("--end", type=int, default=None, help="0-based region end (exclusive).")
    c.add_argument("--ref", default=None, type=_path_exists, help="Reference FASTA for ref bases.")
    c.add_argument("--outdir", required=True, help="Output directory.")
    c.add_argument("--include-tier2", action="store_true", help="Clean with tier2 (permissive) rules.")
    c.add_argument("--min-qscore", type=int, default=0, help="Minimum base quality for kept calls.")
    c.add_argument("--min-mapq", type=int, default=0, help="Minimum mapping quality for kept calls.")
    c.add_argument("--tier1-min-mapq", type=int, default=20, help="Reads below this MAPQ are tier2-only.")
    c.add_argument("--tier2-min-mapq", type=int, default=0, help="Reads below this MAPQ are dropped at tier2.")
    c.add_argument(
        "--independent-eprob",
        action="store_true",
        help="Use independent per-call error probabilities (no dependency model).",
    )
    c.add_argument(
        "--dependency-factor",
        type=_fraction,
        default=0.35,
        help="Error dependency between same-base, same-strand calls.",
    )
    c.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_write_vcf(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "write_vcf.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("somindel")
    logger.info("somindel %s", __version__)

    try:
        if args.indel_region_flank_size < 0:
            raise ValueError("--indel-region-flank-size must be >= 0")

        opt = SomaticIndelFilterOptions(
            chrom=str(args.chrom),
            max_depth=args.max_depth,
            indel_max_window_filtered_basecall_frac=float(args.indel_max_window_filtered_basecall_frac),
            sindel_quality_lower_bound=int(args.sindel_quality_lower_bound),
            scoring_mode=ScoringMode(args.scoring_mode),
            indel_region_flank_size=int(args.indel_region_flank_size),
        )
        model: Optional[ScoringModel] = None
        if args.scoring_model is not None:
            model = LogisticScoringModel.load(args.scoring_model)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Scoring mode: {opt.scoring_mode.value}")
            print(f"Scoring model: {args.scoring_model or 'none'}")
            print("Planned outputs:")
            print(f"  {args.vcf_name} -> {outdir / args.vcf_name}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            if not args.no_report:
                print(f"  report.html -> {outdir / 'report.html'}")
            return 0

        run = write_somatic_indel_vcf(
            calls_path=args.calls,
            windows_path=args.windows,
            opt=opt,
            outdir=outdir,
            model=model,
            vcf_name=args.vcf_name,
            reference=args.reference,
            contig_length=args.contig_length,
            progress=True,
        )

        if not args.no_report:
            plots_dir = outdir / "plots"
            filter_png = plots_dir / "filter_counts.png"
            af_png = plots_dir / "tumor_af_hist.png"
            plot_filter_counts(
                filter_counts=run["filter_counts"],
                n_pass=run["counts"]["records_pass"],
                out_png=filter_png,
            )
            plot_af_hist(
                bin_edges=run["tumor_af_hist"]["bin_edges"],
                counts=run["tumor_af_hist"]["counts"],
                out_png=af_png,
            )
            report_path = render_report(
                outdir=outdir,
                version=__version__,
                run=run,
                plots={
                    "filter_counts": str(Path("plots") / filter_png.name),
                    "af_hist": str(Path("plots") / af_png.name),
                },
            )
            logger.info("Report written: %s", report_path)

        print(str(run["vcf_path"]))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_clean_pileup(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "clean_pileup.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    try:
        check_bam_index(args.bam)
        opt = PileupCleanerOptions(
            min_qscore=int(args.min_qscore),
            min_mapq=int(args.min_mapq),
            is_dependent_eprob=not bool(args.independent_eprob),
            dependency_factor=float(args.dependency_factor),
        )

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print("Planned outputs:")
            print(f"  pileup_stats.tsv.gz -> {outdir / 'pileup_stats.tsv.gz'}")
            print(f"  pileup_summary.json -> {outdir / 'pileup_summary.json'}")
            return 0

        summary = clean_bam_region(
            bam_path=args.bam,
            contig=str(args.contig),
            outdir=outdir,
            opt=opt,
            start=args.start,
            end=args.end,
            ref_fa=args.ref,
            include_tier2=bool(args.include_tier2),
            tier1_min_mapq=int(args.tier1_min_mapq),
            tier2_min_mapq=int(args.tier2_min_mapq),
            progress=True,
        )
        print(str(summary["pileup_stats_tsv_gz"]))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "write-vcf":
        return cmd_write_vcf(args)
    if args.cmd == "clean-pileup":
        return cmd_clean_pileup(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
