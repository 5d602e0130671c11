"""
Command-line entry point: fill a Word template with statement figures,
business license data and credit terms.

Example:
    credit-report-autofill --template 模板.docx --financial 2023年报表.xlsx 2024年报表.xlsx \
        --license-text 营业执照.txt --credit-amount 500 --credit-period 12
"""

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from dotenv import load_dotenv

from .api_client import LLMClient, OCRClient
from .config import ServiceSettings
from .errors import CreditReportError, InputFormatError
from .report_fields import TEXT_FIELDS
from .session import ReportSession


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Fill a credit investigation report template')
    parser.add_argument('--template', required=True, help='Word template (.docx)')
    parser.add_argument('--financial', nargs='+', default=[], help='Financial statement files (.xlsx/.xls/.csv)')
    license_group = parser.add_mutually_exclusive_group()
    license_group.add_argument('--license-text', help='OCR transcript of the business license (JSON or text)')
    license_group.add_argument('--license-image', help='Business license image, recognized via the OCR service')
    parser.add_argument('--credit-type', help='授信类型')
    parser.add_argument('--credit-amount', type=float, help='授信金额 (万元)')
    parser.add_argument('--credit-period', type=int, help='授信期限 (月)')
    parser.add_argument('--credit-purpose', help='授信用途')
    parser.add_argument('--title', help='Report title')
    parser.add_argument('--narratives', help='JSON file with narrative section texts')
    parser.add_argument('--generate-narratives', action='store_true',
                        help='Generate missing narrative sections with the language model')
    parser.add_argument('--output', help='Output file or directory (default: current directory)')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def _output_path(output, file_name: str) -> Path:
    if not output:
        return Path.cwd() / file_name
    path = Path(output)
    if path.is_dir():
        return path / file_name
    return path


def main(argv=None) -> int:
    load_dotenv()
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )

    settings = ServiceSettings.from_env()
    session = ReportSession()

    try:
        print(f"📄 Loading template: {args.template}")
        analysis = session.load_template(Path(args.template).read_bytes(), Path(args.template).name)
        if analysis.field_placeholders:
            print(f"   Found {len(analysis.field_placeholders)} placeholders: "
                  f"{', '.join(analysis.field_placeholders)}")
        else:
            print("   No placeholders found, heuristic filling will be used")

        if args.financial:
            print(f"\n📊 Parsing {len(args.financial)} financial statement file(s)...")
            parsed = session.load_financial_files(args.financial)
            for year in sorted(parsed.raw_data):
                print(f"   ✅ {year}: {parsed.raw_data[year].source}")
            for name, error in parsed.errors.items():
                print(f"   ⚠️ {name}: {error}")

        if args.license_text:
            print(f"\n🏢 Parsing business license transcript: {args.license_text}")
            session.load_business_info_text(Path(args.license_text).read_text(encoding='utf-8'))
        elif args.license_image:
            print(f"\n🏢 Recognizing business license image: {args.license_image}")
            mime_type = mimetypes.guess_type(args.license_image)[0] or 'image/jpeg'
            session.load_business_license(Path(args.license_image).read_bytes(), OCRClient(settings),
                                          mime_type=mime_type)
        if session.business_info:
            print(f"   Company: {session.business_info.get('companyName') or '(unknown)'}")

        credit_info = {
            'creditType': args.credit_type,
            'creditAmount': args.credit_amount,
            'creditPeriod': args.credit_period,
            'creditPurpose': args.credit_purpose,
        }
        narratives = {}
        if args.narratives:
            narratives = json.loads(Path(args.narratives).read_text(encoding='utf-8'))
            if not isinstance(narratives, dict):
                raise InputFormatError(f"叙述内容文件必须是JSON对象: {args.narratives}")

        context = session.build_context(credit_info, narratives, report_title=args.title)

        if args.generate_narratives:
            missing = [name for name in TEXT_FIELDS if not narratives.get(name)]
            print(f"\n✍️ Generating {len(missing)} narrative section(s)...")
            generated = LLMClient(settings).generate_all_content(context, fields=missing)
            narratives = {**narratives, **{k: v for k, v in generated.items() if v}}
            context = session.build_context(credit_info, narratives, report_title=args.title)

        print("\n🛠️ Generating report...")
        document = session.generate_report(context)
        output_path = _output_path(args.output, session.report_file_name(context))
        output_path.write_bytes(document)
        print(f"\n✅ Report saved to: {output_path}")
        return 0

    except (CreditReportError, OSError, json.JSONDecodeError) as e:
        logging.getLogger(__name__).debug("Report generation failed", exc_info=True)
        print(f"\n❌ Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
