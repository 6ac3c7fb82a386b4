import json

from grocery_pricing.cli import build_parser, main


class TestCli:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_match(self, capsys):
        assert main(["match", "beurre", "beurre salé"]) == 0
        assert "match" in capsys.readouterr().out
        assert main(["match", "beurre", "beurre d'arachide"]) == 1

    def test_translate(self, capsys):
        assert main(["translate", "chicken breast"]) == 0
        assert "poitrine de poulet" in capsys.readouterr().out

    def test_find(self, tmp_path, capsys):
        catalogue = tmp_path / "catalogue.json"
        catalogue.write_text(json.dumps(["Lait 2% 4 L", {"name": "Pain tranché"}, "Savon"]), encoding="utf-8")

        assert main(["find", "--catalogue", str(catalogue), "lait"]) == 0
        out = capsys.readouterr().out
        assert "Lait 2% 4 L" in out
        assert "Savon" not in out

    def test_price_without_cache(self, capsys):
        assert main(["price", "pomme", "--cache", ""]) == 0
        out = capsys.readouterr().out
        assert "1.99" in out
        assert "fallback" in out

    def test_import_gov_then_price(self, tmp_path, gov_csv_file, capsys):
        cache_path = tmp_path / "prices.json"

        assert main(["import-gov", "--csv", str(gov_csv_file), "--cache", str(cache_path), "--region", "Québec"]) == 0
        data = json.loads(cache_path.read_text(encoding="utf-8"))
        assert data["_meta"]["total_entries"] == 4

        capsys.readouterr()
        assert main(["price", "beurre", "--cache", str(cache_path)]) == 0
        out = capsys.readouterr().out
        assert "15.00" in out
        assert "government" in out

    def test_import_gov_missing_csv(self, tmp_path):
        assert main(["import-gov", "--csv", str(tmp_path / "absent.csv"), "--cache", str(tmp_path / "c.json")]) == 1

    def test_deals_missing_snapshot(self, tmp_path, capsys):
        code = main(["deals", "--flyers", str(tmp_path / "absent.json"), "--postal-code", "H2X", "lait"])
        assert code == 1
        assert "Error" in capsys.readouterr().out

    def test_parser_defaults(self):
        args = build_parser().parse_args(["deals", "--flyers", "f.json", "--postal-code", "H2X", "lait", "oeufs"])
        assert args.max_vendors == 8
        assert args.ingredients == ["lait", "oeufs"]
