from infra.config import load_config


def test_config_del_repo():
    cfg = load_config()
    assert cfg.lectura.filas_encabezado == 10
    assert "importe" in cfg.lectura.palabras_importe
    assert cfg.tickets.error_conexion == "Error de conexión"


def test_archivo_inexistente_usa_valores_por_defecto(tmp_path):
    cfg = load_config(tmp_path / "no_existe.yaml")
    assert cfg.app.fecha_vista_formato == "%d/%m/%Y"
    assert cfg.export.formato_fecha_excel == "DD/MM/YYYY"


def test_yaml_parcial_se_mezcla(tmp_path):
    ruta = tmp_path / "config.yaml"
    ruta.write_text("servicios:\n  timeout_segundos: 5\nlectura:\n  filas_encabezado: 3\n", encoding="utf-8")
    cfg = load_config(ruta)
    assert cfg.servicios.timeout_segundos == 5
    assert cfg.lectura.filas_encabezado == 3
    assert cfg.servicios.url_anotador.endswith("/api/analyze-ticket")
    assert cfg.lectura.csv_separadores == [";", ",", "\t"]


def test_urls_desde_entorno(monkeypatch, tmp_path):
    monkeypatch.setenv("CONCILIADOR_URL_EMPAREJADOR", "https://match.example/api")
    cfg = load_config(tmp_path / "no_existe.yaml")
    assert cfg.servicios.url_emparejador == "https://match.example/api"
